from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenda_api.database import get_db
from agenda_api.services.pending_appointment_service import sweep_expired_pending_appointments

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/sweep")
def sweep_expired_holds(db: Session = Depends(get_db)):
    """Remove expired pending appointments now instead of waiting for the worker."""
    removed = sweep_expired_pending_appointments(db)
    db.commit()
    return {"success": True, "removed": removed}
