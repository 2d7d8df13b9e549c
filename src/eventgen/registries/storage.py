"""Backend-neutral access to persisted runtime values.

The kill ledger and the RNG pool only ever see :class:`RuntimeKVStore`;
``EVENTGEN_STATE_BACKEND`` decides whether that is the SQLite database or
the JSON save file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from eventgen import env

__all__ = [
    "RuntimeKVStore",
    "StateStores",
    "get_state_backend",
    "get_stores",
]


class RuntimeKVStore(Protocol):
    """String keys to string values; a missing key reads as ``None``."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass(frozen=True)
class StateStores:
    runtime_kv: RuntimeKVStore


def _sqlite() -> StateStores:
    from .sqlite_store import get_stores as build

    return build()


def _json() -> StateStores:
    from .json_store import get_stores as build

    return build()


_BACKENDS: Dict[str, Callable[[], StateStores]] = {"sqlite": _sqlite, "json": _json}


def get_state_backend() -> str:
    return env.get_state_backend()


def get_stores() -> StateStores:
    backend = get_state_backend()
    try:
        build = _BACKENDS[backend]
    except KeyError:
        raise ValueError(f"Unsupported state backend: {backend}") from None
    return build()
