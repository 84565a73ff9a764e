from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class ConversationStatusResponse(BaseModel):
    instance_id: str
    contact_number: str
    status: str
    hold_id: Optional[str] = None


class ConversationStatusUpdateRequest(BaseModel):
    status: Literal["active", "waiting_human", "closed"]


class ConversationStatusUpdateResponse(BaseModel):
    success: bool
    updated: bool
    status: str
    message: Optional[str] = None


class ConversationSummary(BaseModel):
    contact_number: str
    status: str
    hold_id: Optional[str] = None
    updated_at: datetime

    model_config = {"from_attributes": True}
