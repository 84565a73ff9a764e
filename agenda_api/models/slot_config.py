from sqlalchemy import Column, DateTime, Integer, String

from agenda_api.database import Base


class SlotConfig(Base):
    __tablename__ = "slot_configs"

    owner_user_id = Column(String(64), primary_key=True)
    slot_size_minutes = Column(Integer, nullable=False, default=15)
    buffer_minutes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
