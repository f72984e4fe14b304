# eduhash/receipts/scanner.py
import io
import logging
from dataclasses import dataclass
from typing import Optional

import pdfplumber
from PIL import Image, ImageOps, UnidentifiedImageError

from eduhash.errors import ReceiptDocumentError

logger = logging.getLogger(__name__)

# Only the first pages of a receipt are scanned
MAX_PAGES = 3
# Render scales tried in order until a QR code decodes (1.0 == 72 dpi)
RENDER_SCALES = (2.0, 3.0, 1.5)


@dataclass
class PdfScan:
    qr_text: Optional[str]
    text: str
    page_number: Optional[int] = None


def decode_qr(image: Image.Image) -> Optional[str]:
    # pyzbar loads the zbar shared library on import
    from pyzbar.pyzbar import decode as qr_decode, ZBarSymbol

    # Try the image as rendered, then inverted (light-on-dark codes)
    gray = image.convert("L")
    for candidate in (gray, ImageOps.invert(gray)):
        results = qr_decode(candidate, symbols=[ZBarSymbol.QRCODE])
        if results:
            return results[0].data.decode("utf-8", errors="replace")
    return None


def scan_image(content: bytes) -> Optional[str]:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ReceiptDocumentError("Unreadable image file.") from e
    return decode_qr(image)


def scan_pdf(content: bytes) -> PdfScan:
    """
    Locate the receipt QR code in a PDF and return it with the text layer of
    the page that carries it. When no page has a QR code, the text of all
    scanned pages is returned with qr_text=None.
    """
    try:
        pdf = pdfplumber.open(io.BytesIO(content))
    except Exception as e:
        # pdfminer raises assorted parser and password errors here
        raise ReceiptDocumentError() from e

    texts = []
    with pdf:
        try:
            pages = pdf.pages[:MAX_PAGES]
        except Exception as e:
            raise ReceiptDocumentError() from e

        for page_number, page in enumerate(pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as e:
                logger.warning("Could not extract text from page %d: %s", page_number, e)
                page_text = ""
            texts.append(page_text)

            for scale in RENDER_SCALES:
                try:
                    rendered = page.to_image(resolution=int(72 * scale)).original
                    qr_text = decode_qr(rendered)
                except ImportError:
                    raise
                except Exception as e:
                    logger.warning("Render error on page %d at scale %.1f: %s", page_number, scale, e)
                    continue
                if qr_text:
                    logger.info("QR code found on page %d at scale %.1f", page_number, scale)
                    return PdfScan(qr_text=qr_text, text=page_text, page_number=page_number)

    return PdfScan(qr_text=None, text="\n".join(texts))
