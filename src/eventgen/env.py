from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional

from eventgen.state import state_path
from eventgen.util import parse_int

_LOG = logging.getLogger(__name__)

_STATE_BACKEND_ENV: Final[str] = "EVENTGEN_STATE_BACKEND"
_VALID_STATE_BACKENDS: Final[frozenset[str]] = frozenset({"sqlite", "json"})
_DB_FILENAME: Final[str] = "eventgen.db"
_SAVE_FILENAME: Final[str] = "save.json"
_CONFIG_LOGGED = False
_RNG_SEED_ENV: Final[str] = "EVENTGEN_RNG_SEED"
_DEFAULT_MODEL_MAP_ENV: Final[str] = "EVENTGEN_DEFAULT_MODEL_MAP"
_GEN_ON_BLOCKED_ENV: Final[str] = "EVENTGEN_GEN_ON_BLOCKED"
_GEN_ON_WALLS_ENV: Final[str] = "EVENTGEN_GEN_ON_WALLS"
_GEN_ON_SOLID_ENV: Final[str] = "EVENTGEN_GEN_ON_SOLID"
_GEN_ON_PLAYER_ENV: Final[str] = "EVENTGEN_GEN_ON_PLAYER"
_MIN_PLAYER_DISTANCE_ENV: Final[str] = "EVENTGEN_MIN_PLAYER_DISTANCE"
_DEFAULT_FORMULA_ENV: Final[str] = "EVENTGEN_DEFAULT_FORMULA"
_DEFAULT_MAXIMUM_ENV: Final[str] = "EVENTGEN_DEFAULT_MAXIMUM"
_DEFAULT_MINIMUM_ENV: Final[str] = "EVENTGEN_DEFAULT_MINIMUM"
_MAP_GROUPS_ENV: Final[str] = "EVENTGEN_MAP_GROUPS"


@dataclass(frozen=True)
class GeneratorDefaults:
    """Process-wide fallbacks used when a call site leaves a field unset."""

    default_model_map: int = 1
    allow_blocked_tiles: bool = False
    allow_wall_tiles: bool = False
    allow_solid_entities: bool = False
    allow_on_player_party: bool = False
    min_player_distance: int = 0
    formula: str = "Maximum"
    maximum: int = 1
    minimum: int = 1
    map_groups_json: str = "[]"


def _parse_bool(raw: Optional[str], *, default: bool = False) -> bool:
    if raw is None:
        return default
    token = raw.strip().lower()
    if token in {"1", "true", "yes", "on"}:
        return True
    if token in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        return default
    return value


def get_state_backend() -> str:
    """Return the configured key/value backend for save data.

    Controlled via ``EVENTGEN_STATE_BACKEND``; ``"sqlite"`` and ``"json"``
    are honoured and anything else falls back to ``"sqlite"``.
    """

    raw = os.getenv(_STATE_BACKEND_ENV)
    if raw is None:
        backend = "sqlite"
    else:
        candidate = raw.strip().lower()
        backend = candidate if candidate in _VALID_STATE_BACKENDS else "sqlite"

    _log_configuration_once(backend)
    return backend


def get_state_database_path() -> Path:
    """Return the resolved path to the SQLite save database."""

    return state_path(_DB_FILENAME)


def get_save_file_path() -> Path:
    """Return the resolved path to the JSON save file."""

    return state_path(_SAVE_FILENAME)


def get_runtime_seed() -> Optional[str]:
    """Return the configured runtime RNG seed, if provided."""

    raw = os.getenv(_RNG_SEED_ENV)
    if raw is None:
        return None

    candidate = raw.strip()
    if not candidate:
        return None

    try:
        # Normalise numeric seeds so ``42`` and ``0x2A`` resolve identically.
        return str(parse_int(candidate))
    except ValueError:
        return candidate


def _log_configuration_once(backend: str) -> None:
    global _CONFIG_LOGGED

    if _CONFIG_LOGGED:
        return

    _LOG.info(
        "state backend=%s db_path=%s save_path=%s rng_seed=%s",
        backend,
        get_state_database_path(),
        get_save_file_path(),
        get_runtime_seed(),
    )
    _CONFIG_LOGGED = True


def generator_defaults() -> GeneratorDefaults:
    """Return process-wide generation defaults read from the environment."""

    formula = (os.getenv(_DEFAULT_FORMULA_ENV) or "").strip() or "Maximum"
    groups = os.getenv(_MAP_GROUPS_ENV)
    if groups is None or not groups.strip():
        groups = "[]"

    maximum = _parse_int_env(_DEFAULT_MAXIMUM_ENV, 1)
    minimum = _parse_int_env(_DEFAULT_MINIMUM_ENV, 1)
    return GeneratorDefaults(
        default_model_map=max(0, _parse_int_env(_DEFAULT_MODEL_MAP_ENV, 1)),
        allow_blocked_tiles=_parse_bool(os.getenv(_GEN_ON_BLOCKED_ENV)),
        allow_wall_tiles=_parse_bool(os.getenv(_GEN_ON_WALLS_ENV)),
        allow_solid_entities=_parse_bool(os.getenv(_GEN_ON_SOLID_ENV)),
        allow_on_player_party=_parse_bool(os.getenv(_GEN_ON_PLAYER_ENV)),
        min_player_distance=max(0, _parse_int_env(_MIN_PLAYER_DISTANCE_ENV, 0)),
        formula=formula,
        # A zero default falls back to 1, like an unset plugin parameter.
        maximum=maximum if maximum > 0 else 1,
        minimum=minimum if minimum > 0 else 1,
        map_groups_json=groups,
    )
