# eduhash/payments.py
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from eduhash.common.protocol import ReceiptView
from eduhash.crypto.aes import FieldEncryptor
from eduhash.errors import FeeAlreadyPaidError, InvalidOtpError, PaymentError, TransactionNotFoundError
from eduhash.receipts.canonical import check_field, format_amount, format_display_timestamp, format_timestamp
from eduhash.receipts.qr import qr_data_url
from eduhash.receipts.signer import ReceiptSigner
from eduhash.storage.db import STATUS_PENDING, TransactionStore
from eduhash.storage.otp import OtpStore

logger = logging.getLogger(__name__)


@dataclass
class PendingPayment:
    transaction_id: str
    otp: str
    amount: str


class PaymentService:
    """
    Two-step fee payment: initiate (encrypt card, open a pending transaction,
    issue an OTP) then confirm (consume the OTP, sign the receipt).
    """

    def __init__(self, store: TransactionStore, otps: OtpStore, encryptor: FieldEncryptor, signer: ReceiptSigner):
        self.store = store
        self.otps = otps
        self.encryptor = encryptor
        self.signer = signer

    def initiate(self, student_id: str, student_name: str, fee_id: str, fee_title: Optional[str],
                 amount, card_number: str, cvv: str) -> PendingPayment:
        logger.info("Payment init: student %s, fee %s, amount %s", student_id, fee_id, amount)

        for value in (student_id, student_name):
            try:
                check_field(value)
            except ValueError as e:
                raise PaymentError(str(e), code="INVALID_RECEIPT_FIELD") from e

        if self.store.find_completed(student_id, fee_id):
            raise FeeAlreadyPaidError()

        amount_str = format_amount(amount)
        card = self.encryptor.encrypt_card(card_number, cvv)
        transaction_id = self.store.save_pending(student_id, student_name, fee_id, fee_title, amount_str, card)

        otp = self.otps.issue(transaction_id)
        return PendingPayment(transaction_id=transaction_id, otp=otp, amount=amount_str)

    def confirm(self, transaction_id: str, otp: str) -> ReceiptView:
        transaction = self.store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        if transaction["status"] != STATUS_PENDING:
            raise PaymentError(f"Transaction is {transaction['status']}", code="TRANSACTION_CLOSED")

        if not self.otps.consume(transaction_id, otp):
            raise InvalidOtpError()

        # Whole seconds: the stored value must reproduce the signed string
        completed_at = datetime.now(tz=timezone.utc).replace(microsecond=0)
        signed = self.signer.sign(
            transaction["studentId"],
            transaction["studentName"],
            transaction["amount"],
            completed_at,
            transaction_id,
        )

        if self.store.complete(transaction_id, completed_at, signed.hash, signed.signature) is None:
            raise PaymentError("Transaction was completed concurrently", code="TRANSACTION_CLOSED")

        payload_json = signed.qr_payload().to_json()
        logger.info("Payment completed: transaction %s, amount %s", transaction_id, transaction["amount"])
        return ReceiptView(
            transaction_id=transaction_id,
            student_name=transaction["studentName"],
            amount=transaction["amount"],
            date=format_timestamp(completed_at),
            display_date=format_display_timestamp(completed_at),
            signature=signed.signature,
            hash=signed.hash,
            qr_payload=payload_json,
            qr_code_url=qr_data_url(payload_json),
        )
