"""
Meta Ads credential storage: one record per user, persisted to a JSON file.
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

NO_CREDENTIALS_MESSAGE = "No Meta Ads credentials found. Please configure your credentials first."


class NoCredentialsError(Exception):
    """The user has not saved Meta Ads credentials yet."""

    def __init__(self, message: str = NO_CREDENTIALS_MESSAGE):
        super().__init__(message)


class CredentialStore:
    """Maps a user id to at most one {account_id, access_token} record."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load_data(self) -> dict:
        try:
            return json.loads(self.path.read_text())
        except (json.JSONDecodeError, FileNotFoundError):
            return {"credentials": {}}

    def _save_data(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))

    def get(self, user_id: str) -> Optional[dict]:
        """Stored record for the user, or None."""
        with self._lock:
            data = self._load_data()
        return data.get("credentials", {}).get(str(user_id))

    def save(self, user_id: str, account_id: str, access_token: str) -> dict:
        """Create or overwrite the user's record."""
        now = datetime.now().isoformat()
        with self._lock:
            data = self._load_data()
            credentials = data.setdefault("credentials", {})
            existing = credentials.get(str(user_id))

            record = {
                "account_id": account_id,
                "access_token": access_token,
                "created_at": existing["created_at"] if existing else now,
                "updated_at": now,
            }
            credentials[str(user_id)] = record
            self._save_data(data)
        return record

    def delete(self, user_id: str) -> bool:
        """Remove the user's record. Returns False if there was none."""
        with self._lock:
            data = self._load_data()
            if data.get("credentials", {}).pop(str(user_id), None) is None:
                return False
            self._save_data(data)
        return True


def public_view(record: Optional[dict]) -> Optional[dict]:
    """What callers may see of a record: the account id and whether a token exists."""
    if not record:
        return None
    return {
        "account_id": record["account_id"],
        "has_token": bool(record.get("access_token")),
    }
