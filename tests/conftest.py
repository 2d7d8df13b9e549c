from __future__ import annotations

import random

import pytest

from eventgen.engine.interfaces import EntityTemplate
from eventgen.env import GeneratorDefaults
from eventgen.services.event_generator import EventGenerator
from eventgen.services.kill_ledger import KillLedger, MapGroups

from fakes import (
    FakeEntities,
    FakeEntity,
    FakeMap,
    FakeRenderer,
    FakeTemplates,
    InMemoryRuntimeKV,
)


@pytest.fixture
def kv() -> InMemoryRuntimeKV:
    return InMemoryRuntimeKV()


@pytest.fixture
def leader() -> FakeEntity:
    return FakeEntity(entity_id=-1, x=0, y=0)


@pytest.fixture
def entities(leader: FakeEntity) -> FakeEntities:
    return FakeEntities(leader)


@pytest.fixture
def fake_map() -> FakeMap:
    return FakeMap()


@pytest.fixture
def templates() -> FakeTemplates:
    return FakeTemplates(
        {
            1: [
                EntityTemplate(3, "Slime"),
                EntityTemplate(5, "Bat"),
                EntityTemplate(7, "Slime"),
                EntityTemplate(9, "Ghost", through=True),
            ],
            4: [EntityTemplate(2, "Knight")],
        },
        names={1: "Model Room", 4: "Castle"},
    )


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def defaults() -> GeneratorDefaults:
    return GeneratorDefaults()


@pytest.fixture
def make_generator(templates, fake_map, entities, renderer, kv, defaults):
    def _make(*, groups: MapGroups | None = None, seed: int = 1234, **overrides) -> EventGenerator:
        ledger = KillLedger(kv, groups)
        return EventGenerator(
            overrides.pop("templates", templates),
            overrides.pop("map_query", fake_map),
            overrides.pop("entities", entities),
            overrides.pop("renderer", renderer),
            ledger,
            defaults=overrides.pop("defaults", defaults),
            rng=random.Random(seed),
            **overrides,
        )

    return _make
