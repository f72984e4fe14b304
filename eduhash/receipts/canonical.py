# eduhash/receipts/canonical.py
"""
Canonical receipt data: the exact string that gets hashed and signed.

v2 layout (current):  studentId|studentName|amount|date|transactionId
legacy layout:        studentId-amount-...-transactionId

Signer and verifier must agree byte for byte, so amounts and timestamps
have one fixed textual form each:
  amount  -> integral values without a decimal point ("5000"), otherwise
             plain decimal notation without trailing zeros ("5000.5")
  date    -> UTC "YYYY-MM-DDTHH:MM:SSZ"
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from eduhash.common.protocol import VerifiedFields

FIELD_SEPARATOR = "|"
LEGACY_SEPARATOR = "-"
V2_FIELD_COUNT = 5

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DISPLAY_TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"

LEGACY_NAME = "(Legacy Receipt)"
LEGACY_DATE = "Legacy Date"


def format_amount(amount) -> str:
    if isinstance(amount, bool):
        raise TypeError("amount must be numeric")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")

    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    return _as_utc(dt).strftime(TIMESTAMP_FORMAT)


def format_display_timestamp(dt: datetime) -> str:
    return _as_utc(dt).strftime(DISPLAY_TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def check_field(value: str) -> str:
    """Reject values that cannot be carried in a canonical receipt string."""
    if not value or not value.strip():
        raise ValueError("Receipt fields must not be empty")
    if FIELD_SEPARATOR in value:
        raise ValueError(f"Receipt field may not contain {FIELD_SEPARATOR!r}: {value!r}")
    return value


def build_canonical(student_id: str, student_name: str, amount, date: datetime, transaction_id: str) -> str:
    fields = [str(student_id), str(student_name), format_amount(amount), format_timestamp(date), str(transaction_id)]
    return FIELD_SEPARATOR.join(check_field(value) for value in fields)


def parse_canonical(data: str) -> Optional[VerifiedFields]:
    # Layout is told apart by the presence of the pipe separator
    if FIELD_SEPARATOR in data:
        parts = data.split(FIELD_SEPARATOR)
        if len(parts) != V2_FIELD_COUNT or not all(parts):
            return None
        return VerifiedFields(
            student_id=parts[0],
            student_name=parts[1],
            amount=parts[2],
            date=parts[3],
            transaction_id=parts[4],
            version="v2",
        )

    parts = data.split(LEGACY_SEPARATOR)
    if len(parts) < 3 or not (parts[0] and parts[1] and parts[-1]):
        return None
    return VerifiedFields(
        student_id=parts[0],
        student_name=LEGACY_NAME,
        amount=parts[1],
        date=LEGACY_DATE,
        transaction_id=parts[-1],
        version="legacy",
    )
