from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from ..core.database import Base, new_uuid

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_uuid)

    # Either a direct recipient (user id as text) or a whole role, or both
    recipient_id = Column(String(36), nullable=True, index=True)
    recipient_role = Column(String(20), nullable=True, index=True)

    type = Column(String(50), nullable=False, default="system")
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now(), index=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id}, recipient_role={self.recipient_role}, title='{self.title}')>"
