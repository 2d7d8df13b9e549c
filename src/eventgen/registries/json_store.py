from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from eventgen.env import get_save_file_path
from eventgen.io.atomic import atomic_write_json

if TYPE_CHECKING:
    from .storage import StateStores

__all__ = ["JSONRuntimeKVStore", "get_stores"]


class JSONRuntimeKVStore:
    """JSON save-file implementation of :class:`RuntimeKVStore`.

    The whole save file is a flat ``{"runtime_kv": {key: value}}`` object.
    Every ``set``/``delete`` rewrites the file atomically, so a reader never
    observes a half-written update.
    """

    __slots__ = ("_path",)

    _LOG = logging.getLogger(__name__)

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self._path = Path(path) if path is not None else get_save_file_path()

    @property
    def path(self) -> Path:
        return self._path

    def _load_raw(self) -> Dict[str, str]:
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except FileNotFoundError:
            return {}
        except (PermissionError, IsADirectoryError, json.JSONDecodeError):
            self._LOG.error("Failed to load save data from %s", self._path, exc_info=True)
            raise

        data: Any = payload.get("runtime_kv") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        atomic_write_json(self._path, {"runtime_kv": data})

    def get(self, key: str) -> Optional[str]:
        return self._load_raw().get(str(key))

    def set(self, key: str, value: str) -> None:
        data = self._load_raw()
        data[str(key)] = str(value)
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._load_raw()
        if data.pop(str(key), None) is None:
            return
        self._write(data)


def get_stores(path: Optional[Path | str] = None) -> "StateStores":
    from .storage import StateStores

    return StateStores(runtime_kv=JSONRuntimeKVStore(path))
