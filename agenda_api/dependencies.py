from typing import Optional

from fastapi import Header, HTTPException


def get_owner_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Tenant id of the caller. Authentication happens upstream."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()
