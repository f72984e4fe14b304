# eduhash/receipts/verifier.py
import logging
from typing import Union

from eduhash.common.protocol import VerificationResult
from eduhash.common.utils import sha256_hex
from eduhash.crypto.keys import KeyMaterial, PublicKey
from eduhash.receipts.canonical import parse_canonical

logger = logging.getLogger(__name__)

MSG_AUTHENTIC = "Verified Authentic - Trusted Source"
MSG_INVALID = "Tampered / Invalid Receipt"
MSG_UNRECOGNISED = "Signature matches but the receipt data layout is not recognised"

NOTE_V2 = "Full cryptographic verification active."
NOTE_LEGACY = "Legacy receipt verified (limited detail)."


class ReceiptVerifier:
    """
    Checks an untrusted (signature, canonical data) pair against the public key.

    Always answers with a VerificationResult; malformed input yields
    valid=False rather than an exception.
    """

    def __init__(self, keys: Union[KeyMaterial, PublicKey]):
        self._keys = keys

    def verify(self, signature: str, data: str) -> VerificationResult:
        if not isinstance(signature, str) or not isinstance(data, str) or not signature or not data:
            return VerificationResult(valid=False, message="Invalid receipt format. Missing signature or data.")

        try:
            calculated_hash = sha256_hex(data)
        except UnicodeEncodeError:
            return VerificationResult(valid=False, message=MSG_INVALID)

        if not self._keys.verify(calculated_hash, signature):
            logger.info("Receipt verification failed (hash %s)", calculated_hash[:16])
            return VerificationResult(valid=False, message=MSG_INVALID)

        fields = parse_canonical(data)
        if fields is None:
            logger.warning("Valid signature over unrecognised data layout (hash %s)", calculated_hash[:16])
            return VerificationResult(valid=False, message=MSG_UNRECOGNISED)

        logger.info("Receipt verified: transaction %s (%s)", fields.transaction_id, fields.version)
        return VerificationResult(
            valid=True,
            message=MSG_AUTHENTIC,
            verified_fields=fields,
            format_version=fields.version,
            note=NOTE_V2 if fields.version == "v2" else NOTE_LEGACY,
        )

    __call__ = verify
