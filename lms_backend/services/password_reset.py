import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from lms_backend.core import config
from lms_backend.core.errors import InvalidOrExpiredToken
from lms_backend.models.user import utcnow
from lms_backend.services.credentials import CredentialStore
from lms_backend.services.mailer import ResetMailer

logger = logging.getLogger(__name__)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class ResetFlow:
    """Issues and redeems single-use password reset tickets.

    Only the sha256 of a ticket is stored. The plaintext leaves the process
    through the mailer and nowhere else.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        mailer: ResetMailer,
        expires_minutes: int | None = None,
        reset_url: str | None = None,
    ) -> None:
        self.credentials = credentials
        self.mailer = mailer
        self.expires_minutes = expires_minutes or config.RESET_TOKEN_EXPIRES_MINUTES
        self.reset_url = (reset_url or config.PASSWORD_RESET_URL).rstrip("/")

    def request_reset(self, email: str, now: datetime | None = None) -> None:
        user = self.credentials.find_by_email(email)
        if user is None:
            # Same outcome as a known email; nothing is written.
            logger.info("Password reset requested for an unknown email.")
            return

        token = secrets.token_hex(20)
        expires_at = (now or utcnow()) + timedelta(minutes=self.expires_minutes)
        self.credentials.store_reset_ticket(user, hash_reset_token(token), expires_at)
        logger.info("Password reset ticket issued for user id=%s", user.id)

        try:
            self.mailer.send_reset_link(user.email, user.name, f"{self.reset_url}/{token}")
        except Exception:
            logger.exception("Password reset email delivery failed for user id=%s", user.id)

    def redeem(self, token: str, new_password: str, now: datetime | None = None) -> int:
        if not token:
            raise InvalidOrExpiredToken()
        user_id = self.credentials.consume_reset_ticket(hash_reset_token(token), new_password, now=now)
        if user_id is None:
            raise InvalidOrExpiredToken()
        logger.info("Password reset completed for user id=%s", user_id)
        return user_id
