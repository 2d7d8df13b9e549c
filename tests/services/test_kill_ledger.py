from __future__ import annotations

import json
import logging

import pytest

from eventgen.services.kill_ledger import (
    LEDGER_KEY,
    KillCountKey,
    KillLedger,
    MapGroups,
    fan_out_keys,
)

from fakes import InMemoryRuntimeKV


def test_key_encoding_matches_save_format() -> None:
    assert KillCountKey.of().encode() == ",,"
    assert KillCountKey.of(0, 0, "Slime").encode() == ",,Slime"
    assert KillCountKey.of(3).encode() == "3,,"
    assert KillCountKey.of(3, 7, "Slime").encode() == "3,7,Slime"
    # a region without a map is meaningless
    assert KillCountKey.of(0, 7, "Slime").encode() == ",,Slime"


def test_key_decode_keeps_commas_in_names() -> None:
    key = KillCountKey.decode("3,7,Slime, the Lesser")
    assert key == KillCountKey(3, 7, "Slime, the Lesser")
    with pytest.raises(ValueError):
        KillCountKey.decode("3,7")


def test_fan_out_collapses_unset_components() -> None:
    assert len(fan_out_keys(3, 7, "Slime")) == 6
    assert fan_out_keys(3, 0, "") == {KillCountKey(), KillCountKey(3, 0, "")}
    assert fan_out_keys() == {KillCountKey()}


def test_increment_updates_every_granularity(kv) -> None:
    ledger = KillLedger(kv)
    ledger.increment(3, 7, "Slime")
    ledger.increment(3, 7, "Bat")
    ledger.increment(3, 0, "Slime")
    ledger.increment(4, 2, "Slime")

    assert ledger.total() == 4
    assert ledger.lookup(0, 0, "Slime") == 3
    assert ledger.lookup(3) == 3
    assert ledger.lookup(3, 7) == 2
    assert ledger.lookup(3, 7, "Slime") == 1
    assert ledger.lookup(3, 0, "Slime") == 2
    assert ledger.lookup(4, 2, "Bat") == 0


def test_fan_out_consistency_over_a_sequence(kv) -> None:
    ledger = KillLedger(kv)
    events = [(1, 1, "a"), (1, 2, "a"), (1, 1, "b"), (2, 1, "a"), (1, 0, ""), (0, 0, "c")]
    for event in events * 3:
        ledger.increment(*event)

    assert ledger.lookup(0, 0, "") == len(events) * 3
    for map_id in (1, 2):
        for region_id in (1, 2):
            for name in ("", "a", "b"):
                assert ledger.lookup(map_id, 0, "") >= ledger.lookup(map_id, region_id, "")
                assert ledger.lookup(map_id, region_id, "") >= ledger.lookup(map_id, region_id, name)


def test_increment_is_one_write(kv) -> None:
    writes = []

    class CountingKV(InMemoryRuntimeKV):
        def set(self, key: str, value: str) -> None:
            writes.append(key)
            super().set(key, value)

    ledger = KillLedger(CountingKV())
    ledger.increment(3, 7, "Slime")
    assert writes == [LEDGER_KEY]


def test_failed_write_leaves_counts_untouched() -> None:
    class FailingKV(InMemoryRuntimeKV):
        fail = False

        def set(self, key: str, value: str) -> None:
            if self.fail:
                raise OSError("disk full")
            super().set(key, value)

    store = FailingKV()
    ledger = KillLedger(store)
    ledger.increment(1, 1, "a")
    store.fail = True
    with pytest.raises(OSError):
        ledger.increment(1, 1, "a")
    assert ledger.lookup(1, 1, "a") == 1
    assert ledger.total() == 1


def test_counts_persist_across_instances(kv) -> None:
    KillLedger(kv).increment(5, 0, "Ghost")
    reloaded = KillLedger(kv)
    assert reloaded.lookup(5, 0, "Ghost") == 1
    assert reloaded.snapshot() == {",,": 1, ",,Ghost": 1, "5,,": 1, "5,,Ghost": 1}


def test_grouped_maps_pool_their_counts(kv) -> None:
    ledger = KillLedger(kv, MapGroups([[1, 2]]))
    before = ledger.lookup(2, 0, "Slime")
    ledger.increment(1, 0, "Slime")
    assert ledger.lookup(2, 0, "Slime") == before + 1
    assert ledger.lookup(1, 0, "Slime") == before + 1
    assert ledger.count_at(2, 0, "Slime") == 0
    # an ungrouped map only sees its own kills
    assert ledger.lookup(3, 0, "Slime") == 0


def test_map_groups_parse_editor_format() -> None:
    names = {"Forest": 4, "Forest Cave": 5}
    raw = json.dumps([json.dumps(["Forest", "Forest Cave", "9"]), json.dumps(["2", "3"])])
    groups = MapGroups.parse(raw, names.get)
    assert groups.group_of(5) == (4, 5, 9)
    assert groups.group_of(3) == (2, 3)
    assert groups.group_of(7) == (7,)
    assert groups.as_lists() == [[4, 5, 9], [2, 3]]


def test_map_groups_skip_unknown_names(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="eventgen.services.kill_ledger"):
        groups = MapGroups.parse([["1", "Nowhere"]])
    assert groups.group_of(1) == (1,)
    assert any("Nowhere" in record.message for record in caplog.records)


def test_malformed_map_groups_are_logged_and_empty(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="eventgen.services.kill_ledger"):
        groups = MapGroups.parse("[not json")
    assert groups.as_lists() == []
    assert caplog.records and caplog.records[0].levelno == logging.ERROR


def test_legacy_array_payload_is_discarded(caplog) -> None:
    store = InMemoryRuntimeKV({LEDGER_KEY: json.dumps([[1, 2, "Slime"], [1, 0, "Bat"]])})
    ledger = KillLedger(store)
    with caplog.at_level(logging.INFO, logger="eventgen.services.kill_ledger"):
        assert ledger.lookup(1, 2, "Slime") == 0
        assert ledger.total() == 0
    assert any("legacy" in record.message for record in caplog.records)

    ledger.increment(1, 2, "Slime")
    assert ledger.lookup(1, 2, "Slime") == 1
    assert ledger.total() == 1
    assert isinstance(json.loads(store.get(LEDGER_KEY)), dict)


def test_legacy_keys_are_deleted_on_load() -> None:
    store = InMemoryRuntimeKV({"slain": json.dumps([[1, 0, "Bat"]]), "slain::group_by_map_id": "{}"})
    ledger = KillLedger(store)
    assert ledger.total() == 0
    assert store.get("slain") is None
    assert store.get("slain::group_by_map_id") is None


def test_undecodable_payload_starts_empty(caplog) -> None:
    store = InMemoryRuntimeKV({LEDGER_KEY: "{broken"})
    with caplog.at_level(logging.WARNING, logger="eventgen.services.kill_ledger"):
        assert KillLedger(store).total() == 0
    assert caplog.records


def test_reset_clears_all_counts(kv) -> None:
    ledger = KillLedger(kv)
    ledger.increment(1, 1, "a")
    ledger.reset()
    assert ledger.snapshot() == {}
    assert KillLedger(kv).total() == 0


def test_non_finite_counts_in_payload_are_dropped() -> None:
    store = InMemoryRuntimeKV({LEDGER_KEY: '{",,": Infinity, ",,Bat": 2, "1,,Bat": NaN}'})
    ledger = KillLedger(store)
    assert ledger.total() == 0
    assert ledger.lookup(0, 0, "Bat") == 2
    assert ledger.lookup(1, 0, "Bat") == 0
