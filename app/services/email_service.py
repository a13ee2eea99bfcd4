# app/services/email_service.py
import smtplib
from email.message import EmailMessage

from app.utils.settings import (
    EMAIL_FROM,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_TIMEOUT_SECONDS,
    SMTP_USE_TLS,
    SMTP_USER,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)


class EmailSender:
    """
    Kanal wysylki (SMTP). Fire-and-forget: zwraca True/False, nie rzuca
    wyjatkow transportu. Timeout na polaczeniu zeby wolny serwer pocztowy
    nie blokowal workera.
    """

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        timeout: int = SMTP_TIMEOUT_SECONDS,
        sender: str = EMAIL_FROM,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sender = sender

    def send(self, to: str, subject: str, html_body: str) -> bool:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if SMTP_USE_TLS:
                    smtp.starttls()
                if SMTP_USER:
                    smtp.login(SMTP_USER, SMTP_PASSWORD)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

        logger.info(f"Email sent successfully to: {to}")
        return True
