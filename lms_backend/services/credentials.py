"""Persistence of identities and their hashed secrets."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lms_backend.auth import passwords
from lms_backend.core.errors import Conflict, InvalidCredentials, NotFound
from lms_backend.models.user import Role, User, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Owns the ``users`` rows and everything touching ``hashed_password``."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def get(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound()
        return user

    def create(self, email: str, name: str, password: str, role: Role | str = Role.STUDENT) -> User:
        normalized_email = normalize_email(email)
        if self.find_by_email(normalized_email) is not None:
            raise Conflict()

        user = User(
            email=normalized_email,
            name=name,
            hashed_password=passwords.hash_password(password),
            role=Role(role).value,
            last_active=utcnow(),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent sign-up for the same email.
            self.db.rollback()
            raise Conflict() from exc
        self.db.refresh(user)

        logger.info("Created account id=%s role=%s", user.id, user.role)
        return user

    def verify(self, email: str, password: str) -> User:
        user = self.find_by_email(email)
        if user is None:
            passwords.burn_verification_time(password)
            raise InvalidCredentials()
        if not passwords.verify_password(password, user.hashed_password):
            raise InvalidCredentials()
        return user

    def update_secret(self, user_id: int, new_password: str) -> None:
        user = self.get(user_id)
        user.hashed_password = passwords.hash_password(new_password)
        self.db.commit()

    def touch_last_active(self, user_id: int) -> None:
        try:
            self.db.query(User).filter(User.id == user_id).update(
                {User.last_active: utcnow()},
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Could not record last activity for user id=%s", user_id, exc_info=True)

    def store_reset_ticket(self, user: User, token_hash: str, expires_at: datetime) -> None:
        user.reset_password_token_hash = token_hash
        user.reset_password_expires_at = expires_at
        self.db.commit()

    def consume_reset_ticket(self, token_hash: str, new_password: str, now: datetime | None = None) -> int | None:
        """Swap in ``new_password`` for the holder of a live reset ticket.

        The match, the secret overwrite and the ticket clear happen in one
        conditional UPDATE, so a ticket can be spent at most once. Returns the
        user id, or ``None`` when no live ticket matched. A matching but
        expired ticket is cleared.
        """
        now = now or utcnow()
        new_hash = passwords.hash_password(new_password)

        live_ticket = (
            User.reset_password_token_hash == token_hash,
            User.reset_password_expires_at > now,
        )
        statement = (
            update(User)
            .values(
                hashed_password=new_hash,
                reset_password_token_hash=None,
                reset_password_expires_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if self.db.get_bind().dialect.update_returning:
            user_id = self.db.execute(statement.where(*live_ticket).returning(User.id)).scalar_one_or_none()
        else:
            # MySQL has no UPDATE ... RETURNING; the WHERE still guards the swap.
            user_id = self.db.query(User.id).filter(*live_ticket).limit(1).scalar()
            if user_id is not None:
                result = self.db.execute(statement.where(User.id == user_id, *live_ticket))
                if result.rowcount != 1:
                    user_id = None

        if user_id is None:
            self.db.query(User).filter(User.reset_password_token_hash == token_hash).update(
                {User.reset_password_token_hash: None, User.reset_password_expires_at: None},
                synchronize_session=False,
            )
            self.db.commit()
            return None
        self.db.commit()
        return user_id

    def delete(self, user_id: int) -> None:
        user = self.get(user_id)
        self.db.delete(user)
        self.db.commit()
