"""Request and response bodies for the user routes."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from lms_backend.auth.passwords import MAX_PASSWORD_BYTES
from lms_backend.models.user import Role

MIN_TLD_LENGTH = 2
MIN_PASSWORD_LENGTH = 8
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50
MAX_BIO_LENGTH = 200


def strip_email_field(value):
    if isinstance(value, str):
        return value.strip()
    return value


def normalize_email_field(value: str) -> str:
    normalized = value.lower()
    if len(normalized.rsplit('.', 1)[-1]) < MIN_TLD_LENGTH:
        raise ValueError('Please provide a valid email.')
    return normalized


def normalize_name_field(value: str) -> str:
    normalized = value.strip()
    if not MIN_NAME_LENGTH <= len(normalized) <= MAX_NAME_LENGTH:
        raise ValueError(f'Name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters.')
    return normalized


def check_new_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    if len(value.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValueError(f'Password must be at most {MAX_PASSWORD_BYTES} bytes.')
    return value


class SignUpRequest(BaseModel):
    email: EmailStr
    name: str
    password: str
    role: Role = Role.STUDENT

    @field_validator('email', mode='before')
    @classmethod
    def strip_email(cls, value):
        return strip_email_field(value)

    @field_validator('email', mode='after')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email_field(value)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_name_field(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_new_password(value)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator('email', mode='before')
    @classmethod
    def strip_email(cls, value):
        return strip_email_field(value)

    @field_validator('email', mode='after')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email_field(value)


class UpdateProfileRequest(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    bio: str | None = None

    @field_validator('email', mode='before')
    @classmethod
    def strip_email(cls, value):
        return strip_email_field(value)

    @field_validator('email', mode='after')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_email_field(value)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_name_field(value)

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_BIO_LENGTH:
            raise ValueError(f'Bio must be {MAX_BIO_LENGTH} characters or fewer.')
        return normalized


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(alias='oldPassword', min_length=1)
    new_password: str = Field(alias='newPassword')

    class Config:
        populate_by_name = True

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_new_password(value)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator('email', mode='before')
    @classmethod
    def strip_email(cls, value):
        return strip_email_field(value)

    @field_validator('email', mode='after')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email_field(value)


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(alias='newPassword')

    class Config:
        populate_by_name = True

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_new_password(value)


class UserProfile(BaseModel):
    """Outward view of an account. Has no field for the password hash."""
    id: int
    email: str
    name: str
    role: str
    avatar: str | None = None
    bio: str | None = None
    last_active: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
