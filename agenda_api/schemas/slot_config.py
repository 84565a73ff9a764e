from typing import Literal, Optional

from pydantic import BaseModel


class SlotConfigResponse(BaseModel):
    slot_size: int
    buffer: int


class SlotConfigRequest(BaseModel):
    slot_size: int
    buffer: int = 0


class ServiceDurationItem(BaseModel):
    name: str
    duration_minutes: Optional[int] = None
    location: Literal["service", "catalog"] = "service"
    catalog_name: Optional[str] = None


class CompatibilityRequest(BaseModel):
    services: list[ServiceDurationItem]


class CompatibilityResponse(BaseModel):
    slot_size: int
    incompatible_services: list[ServiceDurationItem]
    total_incompatible: int
