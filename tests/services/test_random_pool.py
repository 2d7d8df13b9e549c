from __future__ import annotations

import json
import logging
import random

import pytest

from eventgen.services.random_pool import RandomPool, stream_key

from fakes import InMemoryRuntimeKV


def _sample(rng: random.Random, size: int = 3) -> list[float]:
    return [rng.random() for _ in range(size)]


def test_batches_replay_after_reload(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EVENTGEN_RNG_SEED", "0x2A")
    store = InMemoryRuntimeKV()

    first = RandomPool(store)
    batch0 = _sample(first.batch_rng(3))
    batch1 = _sample(first.batch_rng(3))
    assert batch0 != batch1
    assert first.batches_drawn(3) == 2
    assert json.loads(store.get(stream_key(3))) == {"seed": "42", "batches": 2}

    # a fresh pool on the same save picks up at the third batch
    second = RandomPool(store)
    assert second.batches_drawn(3) == 2
    replay = RandomPool(InMemoryRuntimeKV())
    replay.batch_rng(3)
    replay.batch_rng(3)
    assert _sample(second.batch_rng(3)) == _sample(replay.batch_rng(3))


def test_numeric_seed_spellings_agree(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EVENTGEN_RNG_SEED", "42")
    decimal = _sample(RandomPool(InMemoryRuntimeKV()).batch_rng(1))
    monkeypatch.setenv("EVENTGEN_RNG_SEED", "0x2a")
    hexadecimal = _sample(RandomPool(InMemoryRuntimeKV()).batch_rng(1))
    assert decimal == hexadecimal


def test_maps_do_not_share_a_sequence() -> None:
    pool = RandomPool(InMemoryRuntimeKV(), default_seed="fixed")
    on_map_1 = _sample(pool.batch_rng(1))
    on_map_2 = _sample(pool.batch_rng(2))
    assert on_map_1 != on_map_2

    # spawning on map 2 left map 1's next batch where it was
    untouched = RandomPool(InMemoryRuntimeKV(), default_seed="fixed")
    untouched.batch_rng(1)
    assert _sample(pool.batch_rng(1)) == _sample(untouched.batch_rng(1))


def test_unreadable_stream_is_reseeded(caplog) -> None:
    store = InMemoryRuntimeKV({stream_key(5): "{oops"})
    pool = RandomPool(store, default_seed="fixed")
    with caplog.at_level(logging.WARNING, logger="eventgen.services.random_pool"):
        assert pool.batches_drawn(5) == 0
    assert caplog.records

    pool.batch_rng(5)
    assert json.loads(store.get(stream_key(5))) == {"seed": "fixed", "batches": 1}


def test_invalid_counter_restarts_at_zero() -> None:
    store = InMemoryRuntimeKV({stream_key(2): json.dumps({"seed": "kept", "batches": -4})})
    pool = RandomPool(store)
    assert pool.batches_drawn(2) == 0
    pool.batch_rng(2)
    assert json.loads(store.get(stream_key(2))) == {"seed": "kept", "batches": 1}


def test_failed_write_does_not_consume_the_batch() -> None:
    class FailingKV(InMemoryRuntimeKV):
        fail = False

        def set(self, key: str, value: str) -> None:
            if self.fail:
                raise OSError("read-only save")
            super().set(key, value)

    store = FailingKV()
    pool = RandomPool(store, default_seed="fixed")
    pool.batch_rng(1)
    store.fail = True
    with pytest.raises(OSError):
        pool.batch_rng(1)
    assert pool.batches_drawn(1) == 1
