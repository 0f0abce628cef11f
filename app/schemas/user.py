from datetime import date
from typing import Optional, Union
from pydantic import EmailStr, Field, field_validator

from .common import CamelModel, LooseText
from ..core.security import UserRole


class RoleSpecificData(CamelModel):
    """Profile fields for the role-specific tables; unused keys are ignored."""

    # patient
    nic: LooseText = None
    rfid: LooseText = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    contact_info: LooseText = None
    address: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: Optional[str] = None

    # doctor / pharmacist / lab technician
    specialization: Optional[str] = None
    license_number: LooseText = None
    qualifications: Optional[str] = None
    experience: Optional[Union[int, str]] = None
    consultation_fee: Optional[Union[float, str]] = None
    available_days: Optional[str] = None


class UserCreate(CamelModel):
    full_name: str
    email: EmailStr
    username: str = Field(..., min_length=4)
    password: str = Field(..., min_length=6)
    role: UserRole
    role_specific_data: Optional[RoleSpecificData] = None

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


class UserUpdate(CamelModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
