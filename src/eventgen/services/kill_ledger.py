"""Persistent kill ("slain") counts with multi-granularity lookup.

Every kill is recorded under each generalisation of its ``(map, region,
name)`` key, so the global total, a map's total, a region's total and each
name-qualified variant can be read back without scanning. Maps configured
into a sharing group pool their counts at lookup time.

The whole counter lives under one key of the save data's
:class:`~eventgen.registries.storage.RuntimeKVStore` and is rewritten in a
single ``set`` per increment; a failed write leaves the previous counts in
place.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from eventgen.registries.storage import RuntimeKVStore

__all__ = [
    "KillCountKey",
    "KillLedger",
    "MapGroups",
    "fan_out_keys",
]

LOG = logging.getLogger(__name__)

LEDGER_KEY = "slain::counter"
# Formats written by older releases; discarded, never converted.
LEGACY_KEYS = ("slain", "slain::group_by_map_id")

MapIdResolver = Callable[[str], Optional[int]]


@dataclass(frozen=True)
class KillCountKey:
    map_id: int = 0
    region_id: int = 0
    name: str = ""

    @classmethod
    def of(cls, map_id: Any = 0, region_id: Any = 0, name: Any = "") -> "KillCountKey":
        """Build a normalised key; a region only counts inside a specific map."""
        m = _non_negative(map_id)
        r = _non_negative(region_id) if m > 0 else 0
        return cls(m, r, str(name or ""))

    def encode(self) -> str:
        map_key = str(self.map_id) if self.map_id > 0 else ""
        region_key = str(self.region_id) if self.map_id > 0 and self.region_id > 0 else ""
        return f"{map_key},{region_key},{self.name}"

    @classmethod
    def decode(cls, raw: str) -> "KillCountKey":
        parts = str(raw).split(",", 2)
        if len(parts) != 3:
            raise ValueError(f"Malformed kill-count key: {raw!r}")
        map_key, region_key, name = parts
        return cls.of(map_key or 0, region_key or 0, name)


def _non_negative(value: Any) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, result)


def fan_out_keys(map_id: int = 0, region_id: int = 0, name: str = "") -> Set[KillCountKey]:
    """Return every key one kill at ``(map_id, region_id, name)`` updates.

    Up to six keys: global, global+name, map, map+name, region, region+name.
    Unset components collapse duplicates.
    """
    return {
        KillCountKey.of(),
        KillCountKey.of(0, 0, name),
        KillCountKey.of(map_id),
        KillCountKey.of(map_id, 0, name),
        KillCountKey.of(map_id, region_id),
        KillCountKey.of(map_id, region_id, name),
    }


def _default_map_id_resolver(token: str) -> Optional[int]:
    text = token.strip()
    if text.isdigit() and int(text) >= 1:
        return int(text)
    return None


class MapGroups:
    """Static partition of maps that share one pooled kill count."""

    __slots__ = ("_by_map",)

    def __init__(self, groups: Iterable[Iterable[int]] = ()) -> None:
        by_map: Dict[int, Tuple[int, ...]] = {}
        for group in groups:
            members = tuple(dict.fromkeys(int(m) for m in group if int(m) > 0))
            for map_id in members:
                # A map listed twice belongs to the last group naming it.
                by_map[map_id] = members
        self._by_map = by_map

    @classmethod
    def parse(cls, raw: Any, resolver: MapIdResolver | None = None) -> "MapGroups":
        """Build groups from configuration text.

        Accepts a JSON array whose entries are arrays (or JSON-encoded
        arrays) of map ids or map names. Unparsable input is logged and
        yields an empty grouping; unresolvable names are skipped.
        """
        resolve = resolver or _default_map_id_resolver
        try:
            outer = json.loads(raw) if isinstance(raw, str) else raw
            if outer is None:
                return cls()
            if not isinstance(outer, list):
                raise ValueError("map groups must be a list")
            groups: List[List[int]] = []
            for entry in outer:
                members = json.loads(entry) if isinstance(entry, str) else entry
                if not isinstance(members, list):
                    raise ValueError(f"map group must be a list: {entry!r}")
                ids: List[int] = []
                for member in members:
                    map_id = _resolve_member(member, resolve)
                    if map_id is None:
                        LOG.warning("map group member %r does not name a map; skipped", member)
                        continue
                    ids.append(map_id)
                if ids:
                    groups.append(ids)
        except (TypeError, ValueError) as exc:
            LOG.error("Failed to parse slain count map groups: %s", exc)
            return cls()
        return cls(groups)

    def group_of(self, map_id: int) -> Tuple[int, ...]:
        return self._by_map.get(int(map_id), (int(map_id),))

    def as_lists(self) -> List[List[int]]:
        seen: List[Tuple[int, ...]] = []
        for group in self._by_map.values():
            if group not in seen:
                seen.append(group)
        return [list(g) for g in seen]


def _resolve_member(member: Any, resolve: MapIdResolver) -> Optional[int]:
    if isinstance(member, bool):
        return None
    if isinstance(member, int):
        return member if member >= 1 else None
    if isinstance(member, str) and member.strip():
        return _default_map_id_resolver(member) or resolve(member)
    return None


class KillLedger:
    """Save-backed kill counter keyed by :class:`KillCountKey`."""

    def __init__(
        self,
        store: RuntimeKVStore,
        groups: MapGroups | None = None,
        *,
        key: str = LEDGER_KEY,
    ) -> None:
        self._store = store
        self._groups = groups or MapGroups()
        self._key = key
        self._counts: Optional[Dict[str, int]] = None

    @property
    def groups(self) -> MapGroups:
        return self._groups

    # Loading ----------------------------------------------------------
    def _load(self) -> Dict[str, int]:
        if self._counts is not None:
            return self._counts

        self._discard_legacy_keys()
        try:
            raw = self._store.get(self._key)
        except Exception:
            LOG.exception("kill ledger read failed key=%s; starting empty", self._key)
            raw = None

        self._counts = self._decode(raw)
        return self._counts

    def _discard_legacy_keys(self) -> None:
        for legacy in LEGACY_KEYS:
            try:
                if self._store.get(legacy) is None:
                    continue
                self._store.delete(legacy)
            except Exception:
                LOG.exception("kill ledger legacy cleanup failed key=%s", legacy)
                continue
            LOG.info("kill ledger discarded legacy save data key=%s", legacy)

    def _decode(self, raw: Optional[str]) -> Dict[str, int]:
        if raw is None:
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            LOG.warning("kill ledger payload undecodable key=%s; starting empty", self._key)
            return {}

        if isinstance(payload, list):
            LOG.info("kill ledger legacy array format discarded key=%s", self._key)
            return {}
        if not isinstance(payload, Mapping):
            LOG.warning("kill ledger payload must be a mapping key=%s; starting empty", self._key)
            return {}

        counts: Dict[str, int] = {}
        for raw_key, raw_value in payload.items():
            try:
                key = KillCountKey.decode(str(raw_key))
                value = int(raw_value)
            except (TypeError, ValueError, OverflowError):
                LOG.debug("kill ledger dropped malformed entry %r=%r", raw_key, raw_value)
                continue
            if value > 0:
                counts[key.encode()] = counts.get(key.encode(), 0) + value
        return counts

    # Mutation ---------------------------------------------------------
    def increment(self, map_id: int = 0, region_id: int = 0, name: str = "") -> Dict[KillCountKey, int]:
        """Add one kill under every generalised key; returns the new counts."""

        current = self._load()
        updated = dict(current)
        changes: Dict[KillCountKey, int] = {}
        for key in fan_out_keys(map_id, region_id, name):
            encoded = key.encode()
            updated[encoded] = updated.get(encoded, 0) + 1
            changes[key] = updated[encoded]

        self._persist(updated)
        self._counts = updated
        for key, value in changes.items():
            LOG.debug("kill count %s increased to %s", key.encode(), value)
        return changes

    def reset(self) -> None:
        self._persist({})
        self._counts = {}

    def _persist(self, counts: Mapping[str, int]) -> None:
        self._store.set(self._key, json.dumps(dict(counts), sort_keys=True, separators=(",", ":")))

    # Queries ----------------------------------------------------------
    def count_at(self, map_id: int = 0, region_id: int = 0, name: str = "") -> int:
        return self._load().get(KillCountKey.of(map_id, region_id, name).encode(), 0)

    def lookup(self, map_id: int = 0, region_id: int = 0, name: str = "") -> int:
        """Kill count at the requested granularity, pooled across a map's group."""

        map_id = _non_negative(map_id)
        if map_id <= 0:
            return self.count_at(0, region_id, name)
        group = self._groups.group_of(map_id)
        if len(group) > 1:
            return sum(self.count_at(m, region_id, name) for m in group)
        return self.count_at(map_id, region_id, name)

    def total(self) -> int:
        return self.count_at()

    def snapshot(self) -> Dict[str, int]:
        return dict(self._load())
