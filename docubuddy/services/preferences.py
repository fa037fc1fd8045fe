import json
import logging
import os
import re
from typing import Optional
from ..config import PREFERENCES_ROOT


logger = logging.getLogger(__name__)


class PreferenceStore:
    """Small string key/value store that outlives a session (one per device)."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryPreferenceStore(PreferenceStore):
    def __init__(self):
        self._values: dict[str, str] = {}

    def get(self, key):
        return self._values.get(key)

    def set(self, key, value):
        self._values[key] = value

    def remove(self, key):
        self._values.pop(key, None)


class FilePreferenceStore(PreferenceStore):
    """Keeps the values of one device in a JSON file."""

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fp:
                values = json.load(fp)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        return values if isinstance(values, dict) else {}

    def _write(self, values: dict) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fp:
            json.dump(values, fp)

    def get(self, key):
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key, value):
        values = self._read()
        values[key] = value
        self._write(values)

    def remove(self, key):
        values = self._read()
        if key in values:
            del values[key]
            self._write(values)


def device_preferences(device_id: str, root: str = PREFERENCES_ROOT) -> PreferenceStore:
    safe_id = re.sub(r"[^A-Za-z0-9_-]", "_", device_id) or "default"
    return FilePreferenceStore(os.path.join(root, f"{safe_id}.json"))
