# eduhash/server.py
import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse

from eduhash.common.protocol import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PublicKeyResponse,
    VerificationResult,
    VerifyReceiptRequest,
)
from eduhash.config import Settings, configure_logging, load_settings
from eduhash.crypto.aes import FieldEncryptor
from eduhash.crypto.keys import KeyMaterial
from eduhash.errors import PaymentError
from eduhash.mailer import OtpMailer
from eduhash.payments import PaymentService
from eduhash.receipts.signer import ReceiptSigner
from eduhash.receipts.verifier import ReceiptVerifier
from eduhash.storage import db
from eduhash.storage.otp import OtpStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    keys: KeyMaterial
    verifier: ReceiptVerifier
    payments: PaymentService
    mailer: OtpMailer


def build_services(settings: Settings, keys: Optional[KeyMaterial] = None,
                   store: Optional[db.TransactionStore] = None,
                   mailer: Optional[OtpMailer] = None) -> Services:
    # Key material first: every signature depends on it being settled
    if keys is None:
        keys = KeyMaterial.load_or_create(settings.jwt_secret, settings.keys_dir, settings.rsa_key_size)
    if store is None:
        store = db.TransactionStore(db.connect(settings))
        store.init_indexes()

    payments = PaymentService(
        store=store,
        otps=OtpStore(settings.otp_ttl_seconds),
        encryptor=FieldEncryptor(keys.get_symmetric_key()),
        signer=ReceiptSigner(keys),
    )
    logger.info("Signing key fingerprint %s", keys.public_key_fingerprint())
    return Services(keys=keys, verifier=ReceiptVerifier(keys), payments=payments,
                    mailer=mailer or OtpMailer(settings))


def create_app(settings: Optional[Settings] = None, *, keys: Optional[KeyMaterial] = None,
               store: Optional[db.TransactionStore] = None, mailer: Optional[OtpMailer] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Missing secret or broken key files abort startup here
        resolved = settings or load_settings()
        configure_logging(resolved.log_level)
        app.state.services = build_services(resolved, keys=keys, store=store, mailer=mailer)
        yield

    app = FastAPI(title="EduHash Receipt Service", version="1.0.0", lifespan=lifespan)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(level, "%s %s - %d [%.0fms]", request.method, request.url.path, response.status_code, duration)
        return response

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def services(request: Request) -> Services:
        return request.app.state.services

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/public-key", response_model=PublicKeyResponse)
    def public_key(request: Request):
        return PublicKeyResponse(public_key=services(request).keys.get_public_key_pem())

    @app.post("/verify-receipt", response_model=VerificationResult, response_model_exclude_none=True)
    def verify_receipt(body: VerifyReceiptRequest, request: Request):
        return services(request).verifier.verify(body.signature, body.original_data)

    @app.post("/payments/initiate", response_model=InitiatePaymentResponse)
    def initiate_payment(body: InitiatePaymentRequest, request: Request, background_tasks: BackgroundTasks):
        svc = services(request)
        pending = svc.payments.initiate(
            student_id=body.student_id,
            student_name=body.student_name,
            fee_id=body.fee_id,
            fee_title=body.fee_title,
            amount=body.amount,
            card_number=body.card_number,
            cvv=body.cvv,
        )
        # Mail goes out after the response; its failure does not affect it
        background_tasks.add_task(svc.mailer.send_otp, body.email, pending.otp, pending.amount)
        return InitiatePaymentResponse(transaction_id=pending.transaction_id)

    @app.post("/payments/verify", response_model=ConfirmPaymentResponse)
    def confirm_payment(body: ConfirmPaymentRequest, request: Request):
        receipt = services(request).payments.confirm(body.transaction_id, body.otp)
        return ConfirmPaymentResponse(receipt=receipt)

    return app


def main():
    import uvicorn

    uvicorn.run(create_app(), host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "5000")))


if __name__ == "__main__":
    main()
