from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.database import insert_ignore
from agenda_api.logging_config import get_logger
from agenda_api.models import SlotConfig
from agenda_api.services.errors import StoreError, ValidationError
from agenda_api.services.timeutils import utcnow

logger = get_logger("slot_config_service")

DEFAULT_SLOT_SIZE_MINUTES = 15
DEFAULT_BUFFER_MINUTES = 0
SLOT_SIZE_RANGE = (5, 60)
BUFFER_RANGE = (0, 60)


@dataclass(frozen=True)
class SlotConfigData:
    slot_size_minutes: int = DEFAULT_SLOT_SIZE_MINUTES
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES


DEFAULT_SLOT_CONFIG = SlotConfigData()


@dataclass
class ServiceDuration:
    name: str
    duration_minutes: Optional[int] = None
    location: str = "service"  # service, catalog
    catalog_name: Optional[str] = None


@dataclass
class CompatibilityReport:
    slot_size: int
    incompatible_services: list[ServiceDuration]

    @property
    def total_incompatible(self) -> int:
        return len(self.incompatible_services)


def _in_range(value, bounds: tuple[int, int]) -> bool:
    low, high = bounds
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


def validate_slot_config(slot_size_minutes, buffer_minutes) -> SlotConfigData:
    if not _in_range(slot_size_minutes, SLOT_SIZE_RANGE):
        raise ValidationError("Slot size must be between %d and %d minutes" % SLOT_SIZE_RANGE)
    if not _in_range(buffer_minutes, BUFFER_RANGE):
        raise ValidationError("Buffer must be between %d and %d minutes" % BUFFER_RANGE)

    return SlotConfigData(slot_size_minutes, buffer_minutes)


def _find_config_row(db: Session, owner_user_id: str) -> Optional[SlotConfig]:
    return db.query(SlotConfig).filter(SlotConfig.owner_user_id == owner_user_id).populate_existing().first()


def get_slot_config(db: Session, owner_user_id: str) -> SlotConfigData:
    """Tenant slot configuration. Created with defaults on first read; defaults on store errors.

    Runs inside a savepoint so a failure here never leaves the caller's
    transaction unusable.
    """
    try:
        with db.begin_nested():
            row = _find_config_row(db, owner_user_id)
            if row is None:
                now = utcnow()
                created = insert_ignore(
                    db,
                    SlotConfig,
                    {
                        "owner_user_id": owner_user_id,
                        "slot_size_minutes": DEFAULT_SLOT_SIZE_MINUTES,
                        "buffer_minutes": DEFAULT_BUFFER_MINUTES,
                        "created_at": now,
                        "updated_at": now,
                    },
                    ["owner_user_id"],
                )
                if created:
                    logger.info(f"Slot config created with defaults for {owner_user_id}")
                # Another request may have created it first.
                row = _find_config_row(db, owner_user_id)
            if row is None:
                return DEFAULT_SLOT_CONFIG
            slot_size, buffer = row.slot_size_minutes, row.buffer_minutes or 0
    except SQLAlchemyError as e:
        logger.error(
            "Failed to read slot config, using defaults",
            extra={"context": {"owner_user_id": owner_user_id, "error": str(e)}},
        )
        return DEFAULT_SLOT_CONFIG

    try:
        return validate_slot_config(slot_size, buffer)
    except ValidationError as e:
        logger.warning(f"Stored slot config for {owner_user_id} is invalid ({e.message}), using defaults")
        return DEFAULT_SLOT_CONFIG


def set_slot_config(db: Session, owner_user_id: str, slot_size_minutes: int, buffer_minutes: int = 0) -> SlotConfigData:
    config = validate_slot_config(slot_size_minutes, buffer_minutes)
    now = utcnow()
    try:
        row = db.query(SlotConfig).filter(SlotConfig.owner_user_id == owner_user_id).with_for_update().first()
        if row is None:
            row = SlotConfig(owner_user_id=owner_user_id, created_at=now)
            db.add(row)
        row.slot_size_minutes = config.slot_size_minutes
        row.buffer_minutes = config.buffer_minutes
        row.updated_at = now
        db.flush()
    except SQLAlchemyError as e:
        logger.error(
            "Failed to save slot config",
            extra={"context": {"owner_user_id": owner_user_id, "error": str(e)}},
        )
        raise StoreError("Could not save the slot configuration") from e

    logger.info(
        "Slot config saved",
        extra={
            "context": {
                "owner_user_id": owner_user_id,
                "slot_size": config.slot_size_minutes,
                "buffer": config.buffer_minutes,
            }
        },
    )
    return config


def find_incompatible_services(slot_size: int, services: Iterable[ServiceDuration]) -> list[ServiceDuration]:
    return [
        service
        for service in services
        if service.duration_minutes and service.duration_minutes > 0 and service.duration_minutes % slot_size != 0
    ]


def check_compatibility(db: Session, owner_user_id: str, services: Iterable[ServiceDuration]) -> CompatibilityReport:
    """Services whose duration is not a whole number of slots. Warning only."""
    slot_size = get_slot_config(db, owner_user_id).slot_size_minutes
    incompatible = find_incompatible_services(slot_size, services)
    if incompatible:
        logger.info(f"{len(incompatible)} services incompatible with {slot_size}-minute slots for {owner_user_id}")
    return CompatibilityReport(slot_size=slot_size, incompatible_services=incompatible)
