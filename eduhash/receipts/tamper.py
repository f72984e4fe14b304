# eduhash/receipts/tamper.py
"""
Tamper detection for rendered receipts.

A receipt PDF carries two channels: the QR code (signed, trusted) and the
visible text (editable by anyone). Every field in the QR's canonical data
must also appear in the visible text, matched on token boundaries so that
12000 is not found inside 120000 and a date is only accepted together
with its time.
"""
import logging
import re
from typing import Callable, Literal, Optional

from pydantic import ValidationError

from eduhash.common.protocol import BaseMessage, QRPayload, VerificationResult
from eduhash.errors import ReceiptDocumentError, VerificationUnavailableError
from eduhash.receipts import scanner
from eduhash.receipts.canonical import (
    FIELD_SEPARATOR,
    V2_FIELD_COUNT,
    format_display_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

Verifier = Callable[[str, str], VerificationResult]

InspectionStatus = Literal[
    "authentic",
    "tampered",
    "invalid_signature",
    "no_qr",
    "invalid_payload",
    "unreadable_document",
    "unsupported_type",
    "unverified",
    "verification_unavailable",
]


class TamperReport(BaseMessage):
    checked: bool
    tampered: bool = False
    field: Optional[str] = None
    expected: Optional[str] = None
    reason: Optional[str] = None


class InspectionResult(BaseMessage):
    status: InspectionStatus
    message: str
    payload: Optional[QRPayload] = None
    tamper: Optional[TamperReport] = None
    verification: Optional[VerificationResult] = None

    @property
    def authentic(self) -> bool:
        return self.status == "authentic"


def _flexible(literal: str) -> str:
    # Escaped literal whose internal whitespace matches any run of whitespace
    return r"\s+".join(re.escape(part) for part in literal.split())


def amount_matches(amount: str, text: str) -> bool:
    # "12,000" and "1,20,000" are read as plain digits
    clean = re.sub(r"(?<=\d),(?=\d)", "", text)
    if "." in amount:
        tail = r"0*"
    else:
        tail = r"(?:\.0+)?"
    pattern = r"(?<!\d)(?<!\d\.)" + re.escape(amount) + tail + r"(?!\.?\d)"
    return re.search(pattern, clean) is not None


def name_matches(name: str, text: str) -> bool:
    if not name.strip():
        return False
    return re.search(r"(?<!\w)" + _flexible(name) + r"(?!\w)", text) is not None


def date_matches(date_raw: str, text: str) -> bool:
    candidates = [date_raw]
    parsed = parse_timestamp(date_raw)
    if parsed is not None:
        candidates.append(format_display_timestamp(parsed))
    for candidate in candidates:
        if re.search(r"(?<!\d)" + _flexible(candidate) + r"(?!\d)", text):
            return True
    return False


def transaction_id_matches(transaction_id: str, text: str) -> bool:
    pattern = r"(?<![A-Za-z0-9])" + re.escape(transaction_id) + r"(?![A-Za-z0-9])"
    return re.search(pattern, text) is not None


def check_fields(data: str, text: str) -> TamperReport:
    """Cross-check the visible text against the canonical fields of a v2 payload."""
    if FIELD_SEPARATOR not in data:
        # Legacy receipts carry too little to compare against
        return TamperReport(checked=False)
    parts = data.split(FIELD_SEPARATOR)
    if len(parts) != V2_FIELD_COUNT:
        return TamperReport(checked=False)

    _, name, amount, date_raw, transaction_id = parts
    checks = [
        ("studentName", name, name_matches, "Visual name does not match digital record."),
        ("amount", amount, amount_matches, "Visual amount does not match digital record."),
        ("date", date_raw, date_matches, "Visual date/time does not match digital record."),
        ("transactionId", transaction_id, transaction_id_matches,
         "Visual Transaction ID does not match digital record."),
    ]
    for field, expected, matches, reason in checks:
        if not matches(expected, text):
            logger.warning("Tamper detected: %s %r not found on receipt", field, expected)
            return TamperReport(checked=True, tampered=True, field=field, expected=expected, reason=reason)
    return TamperReport(checked=True)


def _parse_payload(qr_text: str) -> Optional[QRPayload]:
    try:
        payload = QRPayload.from_json(qr_text)
    except (ValueError, ValidationError):
        return None
    if not payload.sig or not payload.data:
        return None
    return payload


def inspect_receipt(content: bytes, content_type: str, verifier: Optional[Verifier] = None) -> InspectionResult:
    """
    Full client-side check of an uploaded receipt (PDF or image).

    The tamper check runs first and is conclusive on its own; only a clean
    receipt is forwarded to `verifier` for the cryptographic check.
    """
    text = None
    try:
        if content_type == "application/pdf":
            scan = scanner.scan_pdf(content)
            qr_text, text = scan.qr_text, scan.text
        elif content_type.startswith("image/"):
            qr_text = scanner.scan_image(content)
        else:
            return InspectionResult(status="unsupported_type",
                                    message="Unsupported file type. Please upload a PDF or Image.")
    except ReceiptDocumentError as e:
        return InspectionResult(status="unreadable_document", message=e.message)

    if not qr_text:
        return InspectionResult(status="no_qr", message="No QR code detected in the file.")

    payload = _parse_payload(qr_text)
    if payload is None:
        return InspectionResult(status="invalid_payload",
                                message="The QR code does not contain a valid receipt payload.")

    if text is not None:
        report = check_fields(payload.data, text)
    else:
        # Images have no text layer to compare
        report = TamperReport(checked=False)

    if report.tampered:
        return InspectionResult(
            status="tampered",
            message=f"Tampered Receipt Detected: {report.reason}",
            payload=payload,
            tamper=report,
        )

    if verifier is None:
        return InspectionResult(status="unverified", message="QR code extracted; signature not checked.",
                                payload=payload, tamper=report)

    try:
        verification = verifier(payload.sig, payload.data)
    except VerificationUnavailableError as e:
        return InspectionResult(status="verification_unavailable", message=e.message,
                                payload=payload, tamper=report)

    return InspectionResult(
        status="authentic" if verification.valid else "invalid_signature",
        message=verification.message,
        payload=payload,
        tamper=report,
        verification=verification,
    )
