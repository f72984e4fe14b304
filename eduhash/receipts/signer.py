# eduhash/receipts/signer.py
import logging
from datetime import datetime

from eduhash.common.protocol import SignedReceipt
from eduhash.common.utils import sha256_hex
from eduhash.crypto.keys import KeyMaterial
from eduhash.receipts.canonical import build_canonical

logger = logging.getLogger(__name__)


class ReceiptSigner:
    """
    Produces the proof of payment for a completed transaction.

    Two stages, mirrored exactly by ReceiptVerifier:
      hash      = hex(SHA-256(canonical_data))
      signature = base64(RSA-sign(private_key, hash))
    """

    def __init__(self, keys: KeyMaterial):
        self._keys = keys

    def sign_canonical(self, canonical_data: str) -> SignedReceipt:
        receipt_hash = sha256_hex(canonical_data)
        signature = self._keys.sign(receipt_hash)
        return SignedReceipt(canonical_data=canonical_data, hash=receipt_hash, signature=signature)

    def sign(self, student_id: str, student_name: str, amount, date: datetime, transaction_id: str) -> SignedReceipt:
        data = build_canonical(student_id, student_name, amount, date, transaction_id)
        receipt = self.sign_canonical(data)
        logger.info("Receipt signed for transaction %s (hash %s)", transaction_id, receipt.hash[:16])
        return receipt
