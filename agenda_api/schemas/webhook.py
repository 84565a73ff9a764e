from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class InboundMessageRequest(BaseModel):
    sender: str = Field(validation_alias=AliasChoices("from", "sender"))
    to: Optional[str] = None
    body: Optional[str] = None
    message_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("message_id", "messageId"))
    timestamp_seconds: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp_seconds", "timestampSeconds", "timestamp"),
    )
    type: str = "text"
    contact_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("contact_name", "contactName"))
    media_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("media_url", "mediaUrl"))
    interactive_button_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("interactive_button_id", "interactiveButtonId"),
    )


class InboundMessageResponse(BaseModel):
    success: bool
    instance_id: str
    contact_number: str
    status: str
    contact_name: Optional[str] = None
    button_id: Optional[str] = None
    button_title: Optional[str] = None


class InteractiveButton(BaseModel):
    id: str
    title: str


class InteractiveMessageRequest(BaseModel):
    to: str
    buttons: list[InteractiveButton] = Field(min_length=1)
    body: Optional[str] = None
    message_id: Optional[str] = None


class InteractiveMessageResponse(BaseModel):
    success: bool
    id: str
    contact_number: str
