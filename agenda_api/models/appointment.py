import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from agenda_api.database import Base


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointment_owner_date", "owner_user_id", "date"),
        Index("ix_appointment_instance_contact", "instance_id", "contact_number"),
        Index("ix_appointment_status", "status"),
        Index("ix_appointment_date_end_date", "date", "end_date"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column(String(64), nullable=False)
    instance_id = Column(String(64))  # null for appointments created manually by staff
    contact_number = Column(String(32), nullable=False)
    contact_name = Column(Text)
    date = Column(DateTime, nullable=False)  # local start time
    end_date = Column(DateTime)
    duration_minutes = Column(Integer, default=60)
    description = Column(Text)
    status = Column(String(16), nullable=False, default="pending")  # pending, confirmed, cancelled, completed
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
