from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenda_api.database import get_db
from agenda_api.dependencies import get_owner_user_id
from agenda_api.schemas.slot_config import (
    CompatibilityRequest,
    CompatibilityResponse,
    ServiceDurationItem,
    SlotConfigRequest,
    SlotConfigResponse,
)
from agenda_api.services.slot_config_service import (
    ServiceDuration,
    check_compatibility,
    get_slot_config,
    set_slot_config,
)

router = APIRouter(prefix="/slot-config", tags=["slot-config"])


@router.get("", response_model=SlotConfigResponse)
def read_slot_config(owner_user_id: str = Depends(get_owner_user_id), db: Session = Depends(get_db)):
    """Tenant slot configuration; created with defaults on first read."""
    config = get_slot_config(db, owner_user_id)
    db.commit()
    return SlotConfigResponse(slot_size=config.slot_size_minutes, buffer=config.buffer_minutes)


@router.put("", response_model=SlotConfigResponse)
def update_slot_config(
    request: SlotConfigRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    config = set_slot_config(db, owner_user_id, request.slot_size, request.buffer)
    db.commit()
    return SlotConfigResponse(slot_size=config.slot_size_minutes, buffer=config.buffer_minutes)


@router.post("/compatibility", response_model=CompatibilityResponse)
def compatibility(
    request: CompatibilityRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    """Services whose duration doesn't divide evenly into slots. Informational only."""
    report = check_compatibility(
        db, owner_user_id, [ServiceDuration(**item.model_dump()) for item in request.services]
    )
    db.commit()
    return CompatibilityResponse(
        slot_size=report.slot_size,
        incompatible_services=[ServiceDurationItem(**vars(service)) for service in report.incompatible_services],
        total_incompatible=report.total_incompatible,
    )
