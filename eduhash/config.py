# eduhash/config.py
import os
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from eduhash.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    keys_dir: str = "keys"
    rsa_key_size: int = 2048
    mongo_uri: str = "mongodb://localhost:27017/"
    mongo_db: str = "eduhash"
    otp_ttl_seconds: int = 300
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    log_level: str = "INFO"


def load_settings() -> Settings:
    # Read .env then the process environment; the secret is mandatory
    load_dotenv()

    secret = os.getenv("JWT_SECRET", "").strip()
    if not secret:
        raise ConfigurationError("JWT_SECRET is missing. Cannot start secure server.")

    return Settings(
        jwt_secret=secret,
        keys_dir=os.getenv("KEYS_DIR", "keys"),
        rsa_key_size=int(os.getenv("RSA_KEY_SIZE", "2048")),
        mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017/"),
        mongo_db=os.getenv("MONGO_DB", "eduhash"),
        otp_ttl_seconds=int(os.getenv("OTP_TTL_SECONDS", "300")),
        smtp_host=os.getenv("SMTP_HOST") or None,
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        email_user=os.getenv("EMAIL_USER") or None,
        email_password=os.getenv("EMAIL_PASSWORD") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
