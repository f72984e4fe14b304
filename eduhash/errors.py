# eduhash/errors.py
from typing import Any, Dict


class EduHashError(Exception):
    """Base exception for all EduHash errors"""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


# Startup failures: the process must not come up
class ConfigurationError(EduHashError):
    def __init__(self, message: str):
        super().__init__(message, code="CONFIG_ERROR")


class KeyMaterialError(EduHashError):
    def __init__(self, message: str):
        super().__init__(message, code="KEY_MATERIAL_ERROR")


# Receipt artifacts
class ReceiptDocumentError(EduHashError):
    """PDF could not be opened (corrupt or password protected)"""

    def __init__(self, message: str = "Failed to load PDF file. It might be corrupted or password protected."):
        super().__init__(message, code="DOCUMENT_UNREADABLE")


# Payment flow
class PaymentError(EduHashError):
    status_code = 400


class TransactionNotFoundError(PaymentError):
    status_code = 404

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} not found", code="TRANSACTION_NOT_FOUND")


class FeeAlreadyPaidError(PaymentError):
    def __init__(self):
        super().__init__("Fee already paid.", code="FEE_ALREADY_PAID")


class InvalidOtpError(PaymentError):
    def __init__(self):
        super().__init__("Invalid OTP", code="INVALID_OTP")


class VerificationUnavailableError(EduHashError):
    def __init__(self, message: str = "Server connection failed during verification."):
        super().__init__(message, code="VERIFICATION_UNAVAILABLE")
