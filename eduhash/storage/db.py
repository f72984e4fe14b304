# eduhash/storage/db.py
import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection

from eduhash.common.protocol import EncryptedField
from eduhash.config import Settings

logger = logging.getLogger(__name__)

STATUS_PENDING = "Pending"
STATUS_COMPLETED = "Completed"


def connect(settings: Settings) -> Collection:
    client = MongoClient(settings.mongo_uri)
    return client[settings.mongo_db]["transactions"]


def _object_id(transaction_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(transaction_id)
    except (InvalidId, TypeError):
        return None


class TransactionStore:
    """
    Fee payment transactions.

    Document shape:
      {
        "_id": ObjectId,
        "studentId": str, "studentName": str,
        "feeId": str, "feeTitle": str | None,
        "amount": str,                      # canonical amount string
        "encryptedCardData": str, "iv": str,  # AES-256-CBC, hex
        "status": "Pending" | "Completed",
        "createdAt": datetime, "completedAt": datetime | None,
        "receiptHash": str | None,          # SHA-256 of canonical receipt data
        "digitalSignature": str | None      # base64 RSA signature over receiptHash
      }
    Completed transactions are never re-signed.
    """

    def __init__(self, collection: Collection):
        self.collection = collection

    def init_indexes(self):
        self.collection.create_index([("studentId", 1), ("feeId", 1), ("status", 1)])

    def get(self, transaction_id: str) -> Optional[dict]:
        oid = _object_id(transaction_id)
        if oid is None:
            return None
        return self.collection.find_one({"_id": oid})

    def find_completed(self, student_id: str, fee_id: str) -> Optional[dict]:
        return self.collection.find_one({"studentId": student_id, "feeId": fee_id, "status": STATUS_COMPLETED})

    def find_pending(self, student_id: str, fee_id: str) -> Optional[dict]:
        return self.collection.find_one({"studentId": student_id, "feeId": fee_id, "status": STATUS_PENDING})

    def save_pending(self, student_id: str, student_name: str, fee_id: str, fee_title: Optional[str],
                     amount: str, card: EncryptedField) -> str:
        # A retried payment updates the open attempt instead of adding another
        existing = self.find_pending(student_id, fee_id)
        if existing:
            self.collection.update_one(
                {"_id": existing["_id"]},
                {"$set": {"amount": amount, "encryptedCardData": card.ciphertext_hex, "iv": card.iv_hex}},
            )
            return str(existing["_id"])

        result = self.collection.insert_one({
            "studentId": student_id,
            "studentName": student_name,
            "feeId": fee_id,
            "feeTitle": fee_title,
            "amount": amount,
            "encryptedCardData": card.ciphertext_hex,
            "iv": card.iv_hex,
            "status": STATUS_PENDING,
            "createdAt": datetime.now(tz=timezone.utc),
            "completedAt": None,
            "receiptHash": None,
            "digitalSignature": None,
        })
        return str(result.inserted_id)

    def complete(self, transaction_id: str, completed_at: datetime, receipt_hash: str,
                 signature: str) -> Optional[dict]:
        # Conditional on Pending: a transaction gets exactly one signature
        oid = _object_id(transaction_id)
        if oid is None:
            return None
        return self.collection.find_one_and_update(
            {"_id": oid, "status": STATUS_PENDING},
            {"$set": {
                "status": STATUS_COMPLETED,
                "completedAt": completed_at,
                "receiptHash": receipt_hash,
                "digitalSignature": signature,
            }},
            return_document=ReturnDocument.AFTER,
        )
