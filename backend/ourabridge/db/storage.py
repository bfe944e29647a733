"""
Local Storage
=============
Durable key-value state for the single linked account, persisted as a JSON
file next to the bridge (the phone's localStorage equivalent).

TokenStore owns the OAuth credential; ScoreCache keeps the last published
snapshot so the watch can show something before the first round trip.
The file is owner-only (0600). Single event loop, so no locking: a
read-modify-write inside one coroutine step is atomic.
"""

from __future__ import annotations

import json
import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ourabridge.models.credential import Credential
from ourabridge.models.snapshot import ScoreSnapshot

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "oura_access_token"
REFRESH_TOKEN_KEY = "oura_refresh_token"
TOKEN_EXPIRY_KEY = "oura_token_expiry"  # epoch milliseconds
CACHED_SCORES_KEY = "oura_cached_scores"


class LocalStorage:
    """String key-value store backed by one JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: not a JSON object", self._path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._data, indent=2))
        os.chmod(self._path, stat.S_IRUSR | stat.S_IWUSR)

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()


class TokenStore:
    """Persisted OAuth credential. Only OAuthManager writes to it."""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage

    def get(self) -> Credential:
        expiry = self._storage.get_item(TOKEN_EXPIRY_KEY)
        expires_at = None
        if expiry:
            try:
                expires_at = datetime.fromtimestamp(int(expiry) / 1000, tz=timezone.utc)
            except ValueError:
                logger.warning("Discarding malformed token expiry %r", expiry)
        return Credential(
            access_token=self._storage.get_item(ACCESS_TOKEN_KEY),
            refresh_token=self._storage.get_item(REFRESH_TOKEN_KEY),
            expires_at=expires_at,
        )

    def put(self, credential: Credential) -> None:
        """Write every field of *credential*; absent fields are removed."""
        self._write(ACCESS_TOKEN_KEY, credential.access_token)
        self._write(REFRESH_TOKEN_KEY, credential.refresh_token)
        expiry = None
        if credential.expires_at is not None:
            expiry = str(int(credential.expires_at.timestamp() * 1000))
        self._write(TOKEN_EXPIRY_KEY, expiry)

    def clear(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY):
            self._storage.remove_item(key)

    def _write(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._storage.remove_item(key)
        else:
            self._storage.set_item(key, value)


class ScoreCache:
    """Last-known-good snapshot, replayed optimistically on startup."""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage

    def get(self) -> Optional[ScoreSnapshot]:
        raw = self._storage.get_item(CACHED_SCORES_KEY)
        if not raw:
            return None
        try:
            return ScoreSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("Cached scores are corrupt — ignoring")
            return None

    def put(self, snapshot: ScoreSnapshot) -> None:
        self._storage.set_item(CACHED_SCORES_KEY, snapshot.model_dump_json())
