# eduhash/mailer.py
import logging
import smtplib
from email.message import EmailMessage

from eduhash.config import Settings

logger = logging.getLogger(__name__)


class OtpMailer:
    """Delivers payment confirmation codes. Failures are logged, never raised."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.email_user
        self.password = settings.email_password

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def build_message(self, to: str, otp: str, amount: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.user or "no-reply@eduhash.local"
        msg["To"] = to
        msg["Subject"] = "EduHash Payment Verification Code"
        msg.set_content(
            f"Your One-Time Password (OTP) for payment confirmation is: {otp}\n\n"
            f"Amount: Rs. {amount}\n\n"
            "This code is valid for this transaction only."
        )
        return msg

    def send_otp(self, to: str, otp: str, amount: str) -> bool:
        if not self.enabled:
            logger.warning("SMTP not configured; OTP for %s not delivered", to)
            return False
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
                smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(self.build_message(to, otp, amount))
        except (smtplib.SMTPException, OSError) as e:
            logger.error("OTP mail to %s failed: %s", to, e)
            return False
        logger.info("OTP sent to %s", to)
        return True
