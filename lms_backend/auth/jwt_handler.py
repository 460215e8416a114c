from datetime import datetime, timedelta, timezone

import jwt

from lms_backend.core import config
from lms_backend.core.errors import Unauthenticated


class TokenIssuer:
    """Signs and verifies stateless session tokens.

    The token is a JWT carrying ``sub`` (the user id), ``iat`` and ``exp``.
    Nothing is stored server side, so a token stays valid until it expires.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        expires_minutes: int | None = None,
    ) -> None:
        self.secret_key = secret_key or config.JWT_SECRET_KEY
        self.algorithm = algorithm or config.JWT_ALGORITHM
        self.expires_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES

    def issue(self, user_id: int, expires_minutes: int | None = None, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        expire = issued_at + timedelta(minutes=expires_minutes or self.expires_minutes)
        payload = {"sub": str(user_id), "iat": issued_at, "exp": expire}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Unauthenticated("Session expired. Please sign in again.") from exc
        except jwt.InvalidTokenError as exc:
            raise Unauthenticated("Invalid token. Please sign in again.") from exc

        try:
            return int(payload["sub"])
        except (TypeError, ValueError) as exc:
            raise Unauthenticated("Invalid token subject.") from exc

    @property
    def max_age_seconds(self) -> int:
        return self.expires_minutes * 60
