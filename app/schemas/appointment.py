from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, ConfigDict

from .common import RecordId


class AppointmentCreate(BaseModel):
    # Required fields are checked by the service so the error names all of them
    patient_id: RecordId = None
    doctor_id: RecordId = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    actual_visit_time: Optional[str] = None
    completion_notes: Optional[str] = None
    prescription_needed: Optional[bool] = None
    lab_tests_needed: Optional[bool] = None


class AppointmentStatusUpdate(BaseModel):
    status: Optional[str] = None
    cancellation_reason: Optional[str] = None
    actual_visit_time: Optional[str] = None
    visit_notes: Optional[str] = None


class CancellationDecision(BaseModel):
    decision: Optional[str] = None
    rejection_reason: Optional[str] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    doctor_id: str
    appointment_date: date
    appointment_time: time
    status: str
    reason: Optional[str] = None
    notes: Optional[str] = None

    actual_visit_time: Optional[str] = None
    visit_notes: Optional[str] = None
    completion_notes: Optional[str] = None
    prescription_needed: Optional[bool] = None
    lab_tests_needed: Optional[bool] = None

    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_requested_at: Optional[datetime] = None
    cancellation_requested_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_rejected_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Joined display fields
    patient_first_name: Optional[str] = None
    patient_last_name: Optional[str] = None
    doctor_first_name: Optional[str] = None
    doctor_last_name: Optional[str] = None
    doctor_specialization: Optional[str] = None


class AvailableDoctor(BaseModel):
    id: str
    user_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    specialization: Optional[str] = None
