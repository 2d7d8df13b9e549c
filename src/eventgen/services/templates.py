"""Resolve template selectors into concrete ``(map, template)`` models."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from eventgen.engine.interfaces import MapInfo, TemplateStore

LOG = logging.getLogger(__name__)

_LETTER_RE = re.compile(r"[a-z]", re.IGNORECASE)
_REGEX_META_RE = re.compile(r"[.*+\-?^${}()|\[\]\\]")
_MAP_ID_RE = re.compile(r"^[1-9]\d*$")


@dataclass(frozen=True)
class TemplateSelector:
    """A template picked by id or name; ``map_id`` 0 means the default model map."""

    selector: str
    map_id: int = 0


@dataclass(frozen=True)
class ModelRef:
    map_id: int
    template_id: int


def is_name_selector(token: str) -> bool:
    return bool(_LETTER_RE.search(token) or _REGEX_META_RE.search(token))


def resolve_map_id(token: Any, map_infos: Iterable[MapInfo]) -> Optional[int]:
    """Map a configured map reference to its id.

    Whole numbers of 1 or more are ids already; anything else is looked up by
    exact map name. Returns ``None`` when nothing matches.
    """

    if isinstance(token, bool):
        return None
    if isinstance(token, int):
        return token if token >= 1 else None
    text = str(token or "").strip()
    if _MAP_ID_RE.match(text):
        return int(text)
    for info in map_infos:
        if info is not None and info.name == text:
            return int(info.map_id)
    return None


def validate_model_map(map_id: int, templates: TemplateStore) -> bool:
    return bool(map_id) and bool(templates.is_map_loaded(int(map_id)))


def _template_id_by_name(name: str, map_id: int, templates: TemplateStore) -> int:
    matches = [t.template_id for t in templates.list_templates_on_map(map_id) if t is not None and t.name == name]
    return min(matches) if matches else 0


def resolve_model(
    selector: TemplateSelector,
    templates: TemplateStore,
    default_map_id: int,
) -> Optional[ModelRef]:
    map_id = int(selector.map_id or default_map_id or 0)
    token = str(selector.selector).strip()
    if not map_id or not token:
        return None
    if not validate_model_map(map_id, templates):
        LOG.debug("template selector=%r skipped; model map=%s not loaded", token, map_id)
        return None

    if is_name_selector(token):
        template_id = _template_id_by_name(token, map_id, templates)
    else:
        try:
            template_id = int(token)
        except ValueError:
            template_id = 0
        if template_id and templates.get_template(map_id, template_id) is None:
            template_id = 0

    if template_id <= 0:
        LOG.debug("template selector=%r on map=%s did not resolve", token, map_id)
        return None
    return ModelRef(map_id=map_id, template_id=template_id)


def resolve_models(
    selectors: Sequence[TemplateSelector],
    templates: TemplateStore,
    default_map_id: int,
) -> List[ModelRef]:
    """Resolve every selector; duplicates are kept so they weight the draw."""

    models: List[ModelRef] = []
    for selector in selectors:
        model = resolve_model(selector, templates, default_map_id)
        if model is not None:
            models.append(model)
    return models
