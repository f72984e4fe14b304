# eduhash/common/utils.py
import base64
import binascii
import hashlib
import hmac
from typing import Optional


def b64encode(data: bytes) -> str:
    # Standard base64 (no newline) string from bytes
    return base64.b64encode(data).decode("ascii")


def b64decode(data_b64: str) -> bytes:
    # Strict decode; raises binascii.Error on junk input
    return base64.b64decode(data_b64.encode("ascii"), validate=True)


def try_b64decode(data_b64: str) -> Optional[bytes]:
    try:
        return b64decode(data_b64)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        return None


def sha256_hex(data: str) -> str:
    # Hex SHA-256 digest (lowercase) of the UTF-8 encoding of data
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def constant_time_compare(a: str, b: str) -> bool:
    # Constant-time compare for two strings (OTP codes, digests)
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def fingerprint_sha256(der_bytes: bytes) -> str:
    # Colon-separated SHA-256 fingerprint of DER-encoded key material
    digest = hashlib.sha256(der_bytes).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))
