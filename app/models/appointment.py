from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Time, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base, new_uuid

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CANCEL_REQUESTED = "cancel_requested"

# Allowed moves between statuses; completed and cancelled are terminal
STATUS_TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCEL_REQUESTED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCEL_REQUESTED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CANCEL_REQUESTED: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.PENDING,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

def can_transition(current: str, target: str) -> bool:
    """Return True if an appointment may move from ``current`` to ``target``."""
    if current == target:
        return True
    try:
        return AppointmentStatus(target) in STATUS_TRANSITIONS[AppointmentStatus(current)]
    except (ValueError, KeyError):
        return False

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_uuid)

    # Relationships
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False, index=True)

    # Appointment details
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)

    # Visit details
    actual_visit_time = Column(String(50), nullable=True)
    visit_notes = Column(Text, nullable=True)
    completion_notes = Column(Text, nullable=True)
    prescription_needed = Column(Boolean, nullable=True)
    lab_tests_needed = Column(Boolean, nullable=True)

    # Workflow tracking
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(36), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String(36), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(36), nullable=True)
    cancellation_requested_at = Column(DateTime, nullable=True)
    cancellation_requested_by = Column(String(36), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_rejected_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, date='{self.appointment_date}')>"
