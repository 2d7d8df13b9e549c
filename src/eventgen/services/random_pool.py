"""Per-map spawn randomness persisted alongside the save data.

Each map owns one stream, stored as ``{"seed", "batches"}`` under
``rng::spawn::<map_id>``. The generator for a batch is seeded from
``(seed, map_id, batches)`` and the counter is saved before the generator is
handed out, so a reloaded save replays the next batch of every map exactly
and spawning on one map never shifts another map's sequence.
"""

from __future__ import annotations

import json
import logging
import random
import secrets
from dataclasses import dataclass
from threading import RLock
from typing import Dict, Optional

from eventgen.env import get_runtime_seed
from eventgen.registries.storage import RuntimeKVStore, get_stores
from eventgen.util import coerce_int, derive_seed_value

__all__ = ["RandomPool", "next_batch_rng", "stream_key"]

LOG = logging.getLogger(__name__)

_STREAM_PREFIX = "rng::spawn::"


def stream_key(map_id: int) -> str:
    return f"{_STREAM_PREFIX}{max(0, coerce_int(map_id))}"


@dataclass(frozen=True)
class _MapStream:
    seed: str
    batches: int = 0

    def encode(self) -> str:
        return json.dumps({"seed": self.seed, "batches": self.batches}, separators=(",", ":"))

    def rng(self, map_id: int) -> random.Random:
        return random.Random(derive_seed_value(self.seed, "spawn", map_id, self.batches))


class RandomPool:
    """Save-backed spawn streams, one per map."""

    def __init__(self, store: RuntimeKVStore, *, default_seed: Optional[str] = None) -> None:
        self._store = store
        self._streams: Dict[int, _MapStream] = {}
        self._lock = RLock()
        self._default_seed = default_seed if default_seed is not None else get_runtime_seed()

    def batch_rng(self, map_id: int) -> random.Random:
        """Return the generator for the next batch on *map_id* and consume it.

        The advanced counter is written before the generator is returned; if
        the write fails the batch is not consumed and the error propagates.
        """

        map_id = max(0, coerce_int(map_id))
        with self._lock:
            stream = self._stream(map_id)
            advanced = _MapStream(stream.seed, stream.batches + 1)
            self._store.set(stream_key(map_id), advanced.encode())
            self._streams[map_id] = advanced
        LOG.debug("spawn rng map=%s batch=%s", map_id, stream.batches)
        return stream.rng(map_id)

    def batches_drawn(self, map_id: int) -> int:
        with self._lock:
            return self._stream(max(0, coerce_int(map_id))).batches

    def _stream(self, map_id: int) -> _MapStream:
        stream = self._streams.get(map_id)
        if stream is None:
            stream = self._read(map_id)
            self._streams[map_id] = stream
        return stream

    def _read(self, map_id: int) -> _MapStream:
        raw = self._store.get(stream_key(map_id))
        if raw is None:
            return _MapStream(self._new_seed())

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            payload = None
        seed = payload.get("seed") if isinstance(payload, dict) else None
        batches = payload.get("batches") if isinstance(payload, dict) else None

        if not isinstance(seed, str) or not seed:
            LOG.warning("spawn rng map=%s state unreadable; reseeding", map_id)
            return _MapStream(self._new_seed())
        if isinstance(batches, bool) or not isinstance(batches, int) or batches < 0:
            LOG.warning("spawn rng map=%s batch counter invalid; restarting at 0", map_id)
            batches = 0
        return _MapStream(seed, batches)

    def _new_seed(self) -> str:
        return self._default_seed or secrets.token_hex(16)


_POOL: Optional[RandomPool] = None
_POOL_LOCK = RLock()


def _get_pool() -> RandomPool:
    global _POOL
    if _POOL is None:
        with _POOL_LOCK:
            if _POOL is None:
                _POOL = RandomPool(get_stores().runtime_kv)
    return _POOL


def next_batch_rng(map_id: int) -> random.Random:
    """Draw from the process-wide pool on the configured save store."""

    return _get_pool().batch_rng(map_id)
