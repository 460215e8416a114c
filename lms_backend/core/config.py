import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lms.db")
DB_CONNECT_MAX_RETRIES = int(os.getenv("DB_CONNECT_MAX_RETRIES", "3"))
DB_CONNECT_RETRY_INTERVAL_SECONDS = float(os.getenv("DB_CONNECT_RETRY_INTERVAL_SECONDS", "5"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))

RESET_TOKEN_EXPIRES_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRES_MINUTES", "60"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "token")
COOKIE_SECURE = _get_bool(os.getenv("COOKIE_SECURE"), default=APP_ENV.lower() == "production")

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")
PASSWORD_RESET_URL = os.getenv("PASSWORD_RESET_URL", f"{CLIENT_URL}/reset-password")

MEDIA_ROOT = os.getenv("MEDIA_ROOT", "./media")
MEDIA_BASE_URL = os.getenv("MEDIA_BASE_URL", "/media")
MAX_AVATAR_BYTES = int(os.getenv("MAX_AVATAR_BYTES", str(2 * 1024 * 1024)))
DEFAULT_AVATAR = os.getenv("DEFAULT_AVATAR", "default-avatar.png")

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")
SMTP_FROM = os.getenv("SMTP_FROM", "") or SMTP_USER


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
