from __future__ import annotations

from eventgen.engine.interfaces import MapInfo
from eventgen.services.templates import (
    ModelRef,
    TemplateSelector,
    is_name_selector,
    resolve_map_id,
    resolve_model,
    resolve_models,
    validate_model_map,
)


def test_selector_kind() -> None:
    assert not is_name_selector("12")
    assert is_name_selector("Slime")
    assert is_name_selector("-3")
    assert is_name_selector("(1)")


def test_name_resolves_to_lowest_id(templates) -> None:
    assert resolve_model(TemplateSelector("Slime"), templates, 1) == ModelRef(1, 3)


def test_numeric_selector_must_exist(templates) -> None:
    assert resolve_model(TemplateSelector("5"), templates, 1) == ModelRef(1, 5)
    assert resolve_model(TemplateSelector("6"), templates, 1) is None


def test_explicit_map_overrides_default(templates) -> None:
    assert resolve_model(TemplateSelector("Knight", map_id=4), templates, 1) == ModelRef(4, 2)
    assert resolve_model(TemplateSelector("Knight"), templates, 1) is None
    assert resolve_model(TemplateSelector("Knight", map_id=8), templates, 1) is None


def test_resolve_models_keeps_duplicates_and_skips_misses(templates) -> None:
    selectors = [TemplateSelector("Bat"), TemplateSelector("Bat"), TemplateSelector("Dragon")]
    assert resolve_models(selectors, templates, 1) == [ModelRef(1, 5), ModelRef(1, 5)]


def test_resolve_map_id() -> None:
    infos = [MapInfo(1, "Town"), MapInfo(2, "Forest"), MapInfo(3, "Forest")]
    assert resolve_map_id("7", infos) == 7
    assert resolve_map_id("Forest", infos) == 2
    assert resolve_map_id("0", infos) is None
    assert resolve_map_id("Sea", infos) is None
    assert resolve_map_id(4, infos) == 4


def test_validate_model_map(templates) -> None:
    assert validate_model_map(1, templates)
    assert not validate_model_map(0, templates)
    assert not validate_model_map(2, templates)
