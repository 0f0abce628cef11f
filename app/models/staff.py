from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base, new_uuid

class Pharmacist(Base):
    __tablename__ = "pharmacists"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    license_number = Column(String(50), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="pharmacist")

    def __repr__(self):
        return f"<Pharmacist(id={self.id}, user_id={self.user_id})>"

class LabTechnician(Base):
    __tablename__ = "lab_technicians"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    specialization = Column(String(100), nullable=True)
    license_number = Column(String(50), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="lab_technician")

    def __repr__(self):
        return f"<LabTechnician(id={self.id}, user_id={self.user_id})>"
