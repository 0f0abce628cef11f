from datetime import date, datetime
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict

from .common import CamelModel, LooseText, RecordId


class PrescriptionItemCreate(CamelModel):
    medicine_id: RecordId = None
    medicine_name: LooseText = None
    dosage: LooseText = None
    frequency: LooseText = None
    duration: LooseText = None
    quantity: Optional[Union[int, float, str]] = None
    instructions: Optional[str] = None


class PrescriptionCreate(CamelModel):
    patient_id: RecordId = None
    doctor_id: RecordId = None
    appointment_id: RecordId = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    prescription_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: Optional[str] = None
    items: List[PrescriptionItemCreate] = []


class PrescriptionStatusUpdate(CamelModel):
    status: str


class PrescriptionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    prescription_id: str
    medicine_id: Optional[str] = None
    medicine_name: str
    dosage: str
    frequency: str
    duration: str
    quantity: Optional[int] = None
    instructions: Optional[str] = None
    created_at: Optional[datetime] = None


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    prescription_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: str
    dispensed_at: Optional[datetime] = None
    dispensed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    doctor_name: Optional[str] = None
    patient_name: Optional[str] = None
    items: List[PrescriptionItemResponse] = []
