# eduhash/receipts/qr.py
import io

import qrcode
import qrcode.constants

from eduhash.common.utils import b64encode


def render_qr_png(payload_json: str, box_size: int = 8, border: int = 4) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload_json)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def qr_data_url(payload_json: str) -> str:
    return "data:image/png;base64," + b64encode(render_qr_png(payload_json))
