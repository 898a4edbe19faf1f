"""Key-value persistence backed by a single JSON document."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class StoreKeys:
    """Logical keys used by the application."""

    CURRENT_USER = "current_user"
    ALL_USERS = "all_users"
    CATALOG = "catalog"
    RECORDS = "records"
    PENDING_USER_PREFIX = "pending_user:"

    @classmethod
    def pending_user(cls, email: str) -> str:
        return f"{cls.PENDING_USER_PREFIX}{email}"


class JsonStore:
    """Stores whole-collection snapshots under string keys.

    Every ``save`` rewrites the document through a temporary file so that a
    crash never leaves a half-written snapshot behind. A document that cannot
    be parsed is treated as empty.
    """

    def __init__(self, storage_path: Path) -> None:
        self.storage_path = Path(storage_path)
        self.lock = RLock()
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.storage_path.exists():
            self._write_data({})

    # public API ---------------------------------------------------------
    def load(self, key: str, default: Any = None) -> Any:
        with self.lock:
            data = self._read_data()
        if key not in data:
            return default
        return data[key]

    def save(self, key: str, value: Any) -> None:
        with self.lock:
            data = self._read_data()
            data[key] = value
            self._write_data(data)

    def delete(self, key: str) -> None:
        with self.lock:
            data = self._read_data()
            if key not in data:
                return
            del data[key]
            self._write_data(data)

    def keys(self, prefix: str = "") -> List[str]:
        with self.lock:
            data = self._read_data()
        return [key for key in data if key.startswith(prefix)]

    def load_list(self, key: str) -> List[Dict[str, Any]]:
        """Return a stored collection, dropping anything that is not a record."""

        value = self.load(key)
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Stored value for %r is not a list, using empty default", key)
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    def load_dict(self, key: str) -> Optional[Dict[str, Any]]:
        value = self.load(key)
        if value is None:
            return None
        if not isinstance(value, dict):
            logger.warning("Stored value for %r is not an object, ignoring it", key)
            return None
        return value

    # helpers ------------------------------------------------------------
    def _read_data(self) -> Dict[str, Any]:
        if not self.storage_path.exists():
            return {}
        raw = self.storage_path.read_text(encoding="utf-8") or "{}"
        try:
            loaded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Storage file %s is malformed, treating it as empty", self.storage_path)
            return {}
        if not isinstance(loaded, dict):
            return {}
        return loaded

    def _write_data(self, data: Dict[str, Any]) -> None:
        temp_path = self.storage_path.with_suffix(".tmp")
        temp_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        temp_path.replace(self.storage_path)


__all__ = ["JsonStore", "StoreKeys"]
