import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from lms_backend.core import config

logger = logging.getLogger(__name__)


class ResetMailer(Protocol):
    def send_reset_link(self, to_address: str, name: str, reset_url: str) -> None:
        ...


def build_reset_message(sender: str, to_address: str, name: str, reset_url: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = "Reset your password"
    message["From"] = sender
    message["To"] = to_address
    message.set_content(
        f"Hi {name},\n\n"
        "We received a request to reset your password. Use the link below to choose a new one.\n\n"
        f"{reset_url}\n\n"
        f"The link expires in {config.RESET_TOKEN_EXPIRES_MINUTES} minutes. "
        "If you did not ask for a reset you can ignore this email.\n"
    )
    return message


class SmtpResetMailer:
    """Delivers reset links over SMTP (implicit TLS on port 465)."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
    ) -> None:
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username if username is not None else config.SMTP_USER
        self.password = password if password is not None else config.SMTP_PASS
        self.sender = sender or config.SMTP_FROM

    def send_reset_link(self, to_address: str, name: str, reset_url: str) -> None:
        message = build_reset_message(self.sender, to_address, name, reset_url)
        smtp_cls = smtplib.SMTP_SSL if self.port == 465 else smtplib.SMTP
        with smtp_cls(self.host, self.port, timeout=10) as server:
            if smtp_cls is smtplib.SMTP:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)


class LogOnlyResetMailer:
    def send_reset_link(self, to_address: str, name: str, reset_url: str) -> None:
        logger.warning("SMTP_HOST is not configured; password reset email was not sent.")


def get_reset_mailer() -> ResetMailer:
    if config.SMTP_HOST:
        return SmtpResetMailer()
    return LogOnlyResetMailer()
