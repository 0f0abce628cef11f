from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base, new_uuid

class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    # Identification
    nic = Column(String(50), nullable=True, index=True)
    health_id = Column(String(50), nullable=True, index=True)
    rfid = Column(String(100), nullable=True, index=True)

    # Personal information
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    contact_info = Column(String(255), nullable=True)
    address = Column(String(255), nullable=True)

    # Medical information
    blood_type = Column(String(10), nullable=True)
    allergies = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="patient")
    appointments = relationship("Appointment", back_populates="patient")

    def __repr__(self):
        return f"<Patient(id={self.id}, user_id={self.user_id})>"
