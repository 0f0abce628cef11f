from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field, field_validator

from .common import CamelModel


class UserRegister(CamelModel):
    full_name: str
    email: EmailStr
    username: str = Field(..., min_length=4)
    password: str = Field(..., min_length=6)

    @field_validator("full_name", "username", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("full_name")
    @classmethod
    def full_name_required(cls, value: str) -> str:
        if not value:
            raise ValueError("Full name is required")
        return value


class UserLogin(CamelModel):
    username: str = Field(..., description="Username or email")
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def username_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value


class ChangePassword(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class UserResponse(CamelModel):
    id: int
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    username: str
    role: str
    profile_image_uri: Optional[str] = None
    is_active: bool
    deactivated_at: Optional[datetime] = None


class UserDetailResponse(UserResponse):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    user: UserResponse
    token: str
