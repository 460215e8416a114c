from typing import Callable

from lms_backend.auth.jwt_handler import TokenIssuer
from lms_backend.core.errors import Unauthenticated
from lms_backend.models.user import Role, User
from lms_backend.services.credentials import CredentialStore


def authenticate_token(tokens: TokenIssuer, token: str | None) -> int:
    """Resolve a session token to a user id without touching the store."""
    if not token:
        raise Unauthenticated()
    return tokens.verify(token)


class AuthGateway:
    """Sign-up, sign-in and session checks on top of the credential store.

    ``record_activity`` decides how last-active gets written after a sign-in.
    The HTTP layer passes a callback that defers it to a background task;
    without one the store is touched inline.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        tokens: TokenIssuer,
        record_activity: Callable[[int], None] | None = None,
    ) -> None:
        self.credentials = credentials
        self.tokens = tokens
        self.record_activity = record_activity or credentials.touch_last_active

    def sign_up(self, email: str, name: str, password: str, role: Role | str = Role.STUDENT) -> tuple[User, str]:
        user = self.credentials.create(email, name, password, role)
        return user, self.tokens.issue(user.id)

    def sign_in(self, email: str, password: str) -> tuple[User, str]:
        user = self.credentials.verify(email, password)
        self.record_activity(user.id)
        return user, self.tokens.issue(user.id)

    def authenticate(self, token: str | None) -> int:
        return authenticate_token(self.tokens, token)

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        user = self.credentials.get(user_id)
        # A live session is not enough; the current password must be proven again.
        self.credentials.verify(user.email, old_password)
        self.credentials.update_secret(user_id, new_password)
