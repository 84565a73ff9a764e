import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String, Text

from agenda_api.database import Base


class InteractiveMessage(Base):
    __tablename__ = "interactive_messages"
    __table_args__ = (Index("ix_interactive_message_contact", "instance_id", "contact_number", "created_at"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    instance_id = Column(String(64), nullable=False)
    contact_number = Column(String(32), nullable=False)
    message_id = Column(Text)
    body = Column(Text)
    buttons = Column(JSON, nullable=False, default=list)  # [{"id": ..., "title": ...}]
    created_at = Column(DateTime(timezone=True), nullable=False)
