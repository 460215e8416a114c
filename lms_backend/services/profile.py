import logging

from sqlalchemy.exc import IntegrityError

from lms_backend.core import config
from lms_backend.core.errors import Conflict
from lms_backend.models.user import User
from lms_backend.services.credentials import CredentialStore, normalize_email
from lms_backend.services.media import LocalMediaStorage

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, credentials: CredentialStore, media: LocalMediaStorage) -> None:
        self.credentials = credentials
        self.media = media

    def get_profile(self, user_id: int) -> User:
        return self.credentials.get(user_id)

    def update_profile(
        self,
        user_id: int,
        name: str | None = None,
        email: str | None = None,
        bio: str | None = None,
        avatar: tuple[str, bytes] | None = None,
    ) -> User:
        """Apply the given fields to the profile of ``user_id``.

        ``avatar`` is a ``(filename, content)`` pair. Fields left as ``None``
        are not touched.
        """
        user = self.credentials.get(user_id)
        db = self.credentials.db

        if email is not None:
            normalized_email = normalize_email(email)
            if normalized_email != user.email:
                existing = self.credentials.find_by_email(normalized_email)
                if existing is not None and existing.id != user.id:
                    raise Conflict("Email is already in use.")
                user.email = normalized_email
        if name is not None:
            user.name = name
        if bio is not None:
            user.bio = bio

        previous_avatar = None
        new_avatar = None
        if avatar is not None:
            filename, content = avatar
            previous_avatar = user.avatar
            new_avatar = self.media.save(filename, content)
            user.avatar = new_avatar

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if new_avatar is not None:
                self.media.delete(new_avatar)
            raise Conflict("Email is already in use.") from exc
        db.refresh(user)

        if previous_avatar and previous_avatar != config.DEFAULT_AVATAR:
            self.media.delete(previous_avatar)
        return user

    def delete_account(self, user_id: int) -> None:
        user = self.credentials.get(user_id)
        avatar = user.avatar
        self.credentials.delete(user_id)
        if avatar and avatar != config.DEFAULT_AVATAR:
            self.media.delete(avatar)
        logger.info("Deleted account id=%s", user_id)
