"""Pydantic schemas for User and Auth."""

import re
from datetime import datetime
from typing import Optional, Union

import pytz
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from accounts.domain.models.user import User, UserRole, UserStatus

PASSWORD_REGEX = re.compile(r"^(?=.*?[A-Z])(?=.*?[a-z])(?=.*?[0-9])(?=.*[@$!%*?&]).{8,}")


def check_password_strength(password: str) -> str:
    if not PASSWORD_REGEX.match(password):
        raise ValueError("validation.strongPassword")
    return password


def _check_phone_pair(phone_code: Optional[str], phone_number: Optional[str]) -> None:
    if bool(phone_code) != bool(phone_number):
        raise ValueError("validation.phonePairRequired")


class RegisterForm(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: EmailStr
    password: str
    confirm_password: str
    phone_code: Optional[str] = Field(default=None, max_length=10)
    phone_number: Optional[str] = Field(default=None, pattern=r"^\d{4,20}$")

    strong_password = field_validator("password")(check_password_strength)

    @model_validator(mode="after")
    def check_passwords_and_phone(self):
        if self.password != self.confirm_password:
            raise ValueError("validation.confirmPasswordNotMatch")
        _check_phone_pair(self.phone_code, self.phone_number)
        return self


class ProfileUpdateForm(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_code: Optional[str] = Field(default=None, max_length=10)
    phone_number: Optional[str] = Field(default=None, pattern=r"^\d{4,20}$")

    @model_validator(mode="after")
    def check_phone_pair(self):
        if "phone_code" in self.model_fields_set or "phone_number" in self.model_fields_set:
            _check_phone_pair(self.phone_code, self.phone_number)
        return self


class EmailRequest(BaseModel):
    email: EmailStr


class OtpRequest(BaseModel):
    email: EmailStr
    otp: Union[int, str]

    @field_validator("otp")
    @classmethod
    def numeric_otp(cls, value):
        value = str(value).strip()
        if not value.isdigit():
            raise ValueError("error.invalidOtp")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str
    confirm_new_password: str

    strong_password = field_validator("new_password")(check_password_strength)

    @model_validator(mode="after")
    def check_passwords(self):
        if self.new_password != self.confirm_new_password:
            raise ValueError("validation.confirmPasswordNotMatch")
        if self.new_password == self.old_password:
            raise ValueError("validation.newAndOldPasswordSame")
        return self


class ResetPasswordRequest(BaseModel):
    user_id: int
    password: str
    confirm_password: str

    strong_password = field_validator("password")(check_password_strength)

    @model_validator(mode="after")
    def check_passwords(self):
        if self.password != self.confirm_password:
            raise ValueError("validation.confirmPasswordNotMatch")
        return self


class UserRead(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    role: UserRole
    status: UserStatus
    phone_code: Optional[str] = None
    phone_number: Optional[str] = None
    profile_picture: Optional[str] = None
    is_email_verified: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    user: UserRead


class PaginationMeta(BaseModel):
    total: int
    current_page: int
    total_pages: int
    per_page: int


class UserPage(BaseModel):
    data: list[UserRead]
    pagination: PaginationMeta


def _localize(value: Optional[datetime], tz) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(tz)


def format_user(user: Union[User, UserRead], timezone: str = "UTC") -> UserRead:
    """Client-facing view of a user, dates shifted into ``timezone``.

    Never exposes the password hash, tokens or OTP codes.
    """
    try:
        tz = pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    formatted = UserRead.model_validate(user)
    return formatted.model_copy(
        update={
            "created_at": _localize(formatted.created_at, tz),
            "updated_at": _localize(formatted.updated_at, tz),
            "deleted_at": _localize(formatted.deleted_at, tz),
        }
    )
