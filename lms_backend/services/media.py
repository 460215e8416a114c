"""Avatar storage on the local filesystem."""

import logging
import secrets
from pathlib import Path

from lms_backend.core import config
from lms_backend.core.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_AVATAR_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}


class LocalMediaStorage:
    def __init__(self, root: str | Path | None = None, base_url: str | None = None) -> None:
        self.root = Path(root or config.MEDIA_ROOT)
        self.base_url = (base_url or config.MEDIA_BASE_URL).rstrip("/")

    def save(self, filename: str, content: bytes) -> str:
        extension = Path(filename or "").suffix.lower()
        if extension not in ALLOWED_AVATAR_EXTENSIONS:
            raise ValidationError("Avatar must be a PNG, JPEG, GIF or WebP image.")
        if not content:
            raise ValidationError("Avatar file is empty.")
        if len(content) > config.MAX_AVATAR_BYTES:
            raise ValidationError(f"Avatar must be at most {config.MAX_AVATAR_BYTES} bytes.")

        self.root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{secrets.token_hex(16)}{extension}"
        (self.root / stored_name).write_bytes(content)
        return f"{self.base_url}/{stored_name}"

    def delete(self, url: str) -> None:
        if not url or url == config.DEFAULT_AVATAR or not url.startswith(f"{self.base_url}/"):
            return
        # Only the last path segment is trusted.
        stored_name = Path(url[len(self.base_url) + 1:]).name
        try:
            (self.root / stored_name).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not delete avatar %s", stored_name, exc_info=True)


def get_media_storage() -> LocalMediaStorage:
    return LocalMediaStorage()
