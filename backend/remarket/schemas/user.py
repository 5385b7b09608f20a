"""
Remarket Backend - User Schemas
=================================

What:  Request and response models for accounts, sessions, profile,
       favorites and admin user management.
Who:   routes/users.py, user_service.

Security:
    `UserResponse` never carries password hashes, refresh tokens or
    verification tokens; every route returning a user goes through it.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from remarket.identifiers import ObjectIdStr
from remarket.schemas.common import Pagination
from remarket.security import BCRYPT_MAX_BYTES

PASSWORD_MIN_LENGTH = 8

Gender = Literal["MALE", "FEMALE", "OTHER"]
Role = Literal["client", "admin"]
UserSortField = Literal["created_at", "email", "username", "display_name"]


def check_password(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ══════════════════════════════════════════════════════════════════════════
# Account lifecycle
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    username: str = Field(min_length=3, max_length=50)
    display_name: Optional[str] = Field(default=None, max_length=100)

    validate_password = field_validator("password")(check_password)


class VerifyAccountRequest(BaseModel):
    email: EmailStr
    token: str = Field(min_length=1, max_length=64)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


# ══════════════════════════════════════════════════════════════════════════
# Profile
# ══════════════════════════════════════════════════════════════════════════


class ProfileUpdate(BaseModel):
    """
    PUT /api/v1/users/update

    Changing the password needs both `current_password` and `new_password`.
    """
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=500)
    gender: Optional[Gender] = None
    avatar_url: Optional[str] = Field(default=None, max_length=2048)
    current_password: Optional[str] = None
    new_password: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    validate_new_password = field_validator("new_password")(check_password)
    blank_gender = field_validator("gender", mode="before")(_blank_to_none)

    @model_validator(mode="after")
    def check_password_change(self) -> "ProfileUpdate":
        if self.new_password and not self.current_password:
            raise ValueError("current_password is required to set a new password")
        return self


class FavoriteRequest(BaseModel):
    listing_id: ObjectIdStr


# ══════════════════════════════════════════════════════════════════════════
# Admin
# ══════════════════════════════════════════════════════════════════════════


class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str
    username: str = Field(min_length=3, max_length=50)
    display_name: Optional[str] = Field(default=None, max_length=100)
    role: Role = "client"

    validate_password = field_validator("password")(check_password)


class AdminUserUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=500)
    gender: Optional[Gender] = None
    avatar_url: Optional[str] = Field(default=None, max_length=2048)
    role: Optional[Role] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    blank_gender = field_validator("gender", mode="before")(_blank_to_none)


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    id: str
    email: str
    username: str
    display_name: str
    role: str
    avatar_url: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RegisterResponse(UserResponse):
    """Registration also hands back the verification token (no email is sent)."""
    verify_token: Optional[str] = None


class LoginResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserPage(BaseModel):
    data: List[UserResponse]
    pagination: Pagination
