"""
Per-user response cache with expiry, persisted to a JSON file.

Expired entries are filtered out on read; clear_expired() only reclaims space.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

MISSING = object()


class CacheStore:
    """Key/value cache scoped by user id."""

    def __init__(self, path: Path, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self.clock = clock
        self._lock = threading.Lock()

    def _ensure_file(self):
        """Ensure the cache file exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text(json.dumps({"users": {}}, indent=2))

    def _load_data(self) -> dict:
        self._ensure_file()
        try:
            return json.loads(self.path.read_text())
        except (json.JSONDecodeError, FileNotFoundError):
            return {"users": {}}

    def _save_data(self, data: dict):
        self._ensure_file()
        self.path.write_text(json.dumps(data, default=str))

    def get(self, user_id: str, key: str, default: Any = None) -> Any:
        """Cached payload for (user_id, key), or default when missing or expired."""
        with self._lock:
            data = self._load_data()

        entry = data.get("users", {}).get(str(user_id), {}).get(key)
        if entry is None or entry.get("expires_at", 0) <= self.clock():
            return default
        return entry.get("data")

    def set(self, user_id: str, key: str, payload: Any, ttl_minutes: int = 30):
        """Insert or replace an entry with a fresh expiry."""
        now = self.clock()
        with self._lock:
            data = self._load_data()
            user_entries = data.setdefault("users", {}).setdefault(str(user_id), {})
            user_entries[key] = {
                "data": payload,
                "expires_at": now + ttl_minutes * 60,
                "created_at": now,
            }
            self._save_data(data)

    def clear_expired(self) -> int:
        """Delete expired entries. Returns how many were removed."""
        now = self.clock()
        removed = 0
        with self._lock:
            data = self._load_data()
            for user_id, entries in list(data.get("users", {}).items()):
                for key in [k for k, e in entries.items() if e.get("expires_at", 0) <= now]:
                    del entries[key]
                    removed += 1
                if not entries:
                    del data["users"][user_id]
            if removed:
                self._save_data(data)

        if removed:
            logger.info("Cache sweep removed %d expired entries", removed)
        return removed

    def clear_user(self, user_id: str) -> bool:
        """Drop every entry for a user (e.g. after their credentials change)."""
        with self._lock:
            data = self._load_data()
            if data.get("users", {}).pop(str(user_id), None) is None:
                return False
            self._save_data(data)
        return True
