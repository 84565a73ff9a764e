import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from agenda_api.database import Base


class PendingAppointment(Base):
    __tablename__ = "pending_appointments"
    __table_args__ = (
        UniqueConstraint("instance_id", "contact_number", name="uq_pending_appointment_contact"),
        Index("ix_pending_appointment_owner", "owner_user_id"),
        Index("ix_pending_appointment_expires_at", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String(64), nullable=False)
    instance_id = Column(String(64), nullable=False)
    contact_number = Column(String(32), nullable=False)
    contact_name = Column(Text)
    date = Column(String(10), nullable=False)  # DD/MM/YYYY
    time = Column(String(5), nullable=False)  # HH:MM
    duration_minutes = Column(Integer)
    service = Column(Text, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
