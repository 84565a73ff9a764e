"""Contact display names seen on inbound messages.

Best-effort only: never consulted for status, holds or availability.
"""

import threading
import time
from typing import Any, Optional

from agenda_api.config import settings


class TTLCache:
    """In-process cache whose entries lapse ttl_seconds after being set."""

    def __init__(self, ttl_seconds: int = 60):
        self._cache: dict[str, tuple[float, Any]] = {}
        self._ttl = ttl_seconds
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._cache:
                return None
            timestamp, value = self._cache[key]
            if time.monotonic() - timestamp > self._ttl:
                del self._cache[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = (time.monotonic(), value)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key:
                self._cache.pop(key, None)
            else:
                self._cache.clear()

    def size(self) -> int:
        return len(self._cache)


_contact_names = TTLCache(ttl_seconds=settings.contact_cache_ttl_seconds)


def _key(instance_id: str, contact_number: str) -> str:
    return f"{instance_id}:{contact_number}"


def remember_contact_name(instance_id: str, contact_number: str, name: Optional[str]) -> None:
    if name and name.strip():
        _contact_names.set(_key(instance_id, contact_number), name.strip())


def get_contact_name(instance_id: str, contact_number: str) -> Optional[str]:
    return _contact_names.get(_key(instance_id, contact_number))


def clear_contact_names() -> None:
    _contact_names.invalidate()
