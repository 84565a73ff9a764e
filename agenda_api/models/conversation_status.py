import uuid

from sqlalchemy import Column, DateTime, Index, String, Text, UniqueConstraint

from agenda_api.database import Base


class ConversationStatus(Base):
    __tablename__ = "conversation_statuses"
    __table_args__ = (
        UniqueConstraint("instance_id", "contact_number", name="uq_conversation_status_contact"),
        Index("ix_conversation_status_instance_status", "instance_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    instance_id = Column(String(64), nullable=False)
    contact_number = Column(String(32), nullable=False)
    status = Column(Text, nullable=False, default="active")  # active, waiting_human, closed, pending_appointment
    hold_id = Column(String(36))  # set only while status == pending_appointment
    expired_hold_id = Column(String(36))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
