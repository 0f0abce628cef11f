from datetime import date, datetime
from typing import Optional

from .common import CamelModel


class PatientRegistryEntry(CamelModel):
    patient_id: Optional[str] = None
    user_id: int
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    username: str
    is_active: bool
    deactivated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    nic: Optional[str] = None
    health_id: Optional[str] = None
    rfid: Optional[str] = None
    rfid_masked: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    contact_info: Optional[str] = None
    address: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: Optional[str] = None


class DoctorRegistryEntry(CamelModel):
    doctor_id: Optional[str] = None
    user_id: int
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    username: str
    is_active: bool
    deactivated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    qualifications: Optional[str] = None
    experience: Optional[int] = None
    consultation_fee: Optional[float] = None
    available_days: Optional[str] = None
    doctor_created_at: Optional[datetime] = None
    doctor_updated_at: Optional[datetime] = None
