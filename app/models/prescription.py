from datetime import datetime
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base, new_uuid

class PrescriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    DISPENSED = "dispensed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False, index=True)
    appointment_id = Column(String(36), nullable=True, index=True)

    diagnosis = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    prescription_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=PrescriptionStatus.ACTIVE.value)

    dispensed_at = Column(DateTime, nullable=True)
    dispensed_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    items = relationship(
        "PrescriptionItem",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="PrescriptionItem.position",
    )

    def __repr__(self):
        return f"<Prescription(id={self.id}, patient_id={self.patient_id}, status='{self.status}')>"

class PrescriptionItem(Base):
    __tablename__ = "prescription_items"

    id = Column(String(36), primary_key=True, default=new_uuid)
    prescription_id = Column(String(36), ForeignKey("prescriptions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    medicine_id = Column(String(36), nullable=True)
    medicine_name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    duration = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=True)
    instructions = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    prescription = relationship("Prescription", back_populates="items")

    def __repr__(self):
        return f"<PrescriptionItem(id={self.id}, medicine_name='{self.medicine_name}')>"
