# eduhash/common/protocol.py
import json
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Base class with serialization helpers
class BaseMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        # Compact JSON using wire (alias) names
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str):
        return cls.model_validate(json.loads(raw))


FormatVersion = Literal["v2", "legacy"]


# QR code content: the only channel the verifier trusts
class QRPayload(BaseMessage):
    sig: str
    data: str


class EncryptedField(BaseMessage):
    ciphertext_hex: str = Field(alias="ciphertextHex")
    iv_hex: str = Field(alias="ivHex")


class SignedReceipt(BaseMessage):
    canonical_data: str = Field(alias="canonicalData")
    hash: str
    signature: str

    def qr_payload(self) -> QRPayload:
        return QRPayload(sig=self.signature, data=self.canonical_data)


class VerifiedFields(BaseMessage):
    student_id: str = Field(alias="studentId")
    student_name: str = Field(alias="studentName")
    amount: str
    date: str
    transaction_id: str = Field(alias="transactionId")
    version: FormatVersion


class VerificationResult(BaseMessage):
    valid: bool
    message: str
    verified_fields: Optional[VerifiedFields] = Field(default=None, alias="verifiedFields")
    format_version: Optional[FormatVersion] = Field(default=None, alias="formatVersion")
    note: Optional[str] = None


# HTTP bodies
class VerifyReceiptRequest(BaseMessage):
    signature: str
    original_data: str = Field(alias="originalData")


class PublicKeyResponse(BaseMessage):
    algorithm: Literal["RSA"] = "RSA"
    format: Literal["PEM"] = "PEM"
    public_key: str = Field(alias="publicKey")


class InitiatePaymentRequest(BaseMessage):
    student_id: str = Field(alias="studentId", min_length=1)
    student_name: str = Field(alias="studentName", min_length=1)
    email: str
    fee_id: str = Field(alias="feeId", min_length=1)
    fee_title: Optional[str] = Field(default=None, alias="feeTitle")
    amount: Decimal = Field(gt=0)
    card_number: str = Field(alias="cardNumber", pattern=r"^\d{12,19}$")
    cvv: str = Field(pattern=r"^\d{3,4}$")

    @field_validator("student_id", "student_name")
    @classmethod
    def printable_on_receipt(cls, value: str) -> str:
        # Both values end up inside the pipe-separated signed receipt string
        if not value.strip():
            raise ValueError("must not be blank")
        if "|" in value:
            raise ValueError("must not contain '|'")
        return value


class InitiatePaymentResponse(BaseMessage):
    transaction_id: str = Field(alias="transactionId")
    message: str = "OTP Sent"


class ConfirmPaymentRequest(BaseMessage):
    transaction_id: str = Field(alias="transactionId")
    otp: str


class ReceiptView(BaseMessage):
    transaction_id: str = Field(alias="transactionId")
    student_name: str = Field(alias="studentName")
    amount: str
    date: str
    display_date: str = Field(alias="displayDate")
    signature: str
    hash: str
    qr_payload: str = Field(alias="qrPayload")
    qr_code_url: str = Field(alias="qrCodeUrl")


class ConfirmPaymentResponse(BaseMessage):
    message: str = "Payment Successful"
    receipt: ReceiptView
