"""Typed generation options and their parsing from plugin-style arguments.

Script triggers hand the generator loosely typed argument mappings whose
nested blocks may themselves be JSON-encoded strings (``"location"``,
``"quantity"``, ``"relativity"``...). They are parsed here, once, into the
frozen option types used by the rest of the package. Unset fields stay
``None`` and are resolved against :class:`~eventgen.env.GeneratorDefaults`
through :func:`resolve_override`, which keeps the call-site > location >
global precedence in one place.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from eventgen.engine.interfaces import Coordinate
from eventgen.env import GeneratorDefaults
from eventgen.services.quantity import Formula, QuantitySpec
from eventgen.services.templates import TemplateSelector
from eventgen.util import coerce_int
from eventgen.world.geometry import (
    Absolute,
    OrientationalShift,
    RelativeToActor,
    RelativeToEntity,
    Relativity,
)
from eventgen.world.occupancy import OccupancyPolicy
from eventgen.world.scope import (
    PointShape,
    RectangleShape,
    RegionSetShape,
    Shape,
    valid_region,
)

LOG = logging.getLogger(__name__)

T = TypeVar("T")

MODE_COORDINATES = "Coordinates"
MODE_REGION = "Region"
MODE_AREA = "Area"

RELATIVITY_ABSOLUTE = "Absolute"
RELATIVITY_EVENT = "Relative to Event"
RELATIVITY_PLAYER = "Relative to Player"

__all__ = [
    "GenerateArgs",
    "LocationSpec",
    "PolicyOverrides",
    "parse_generate_args",
    "parse_location",
    "parse_quantity",
    "parse_relativity",
    "parse_template_selectors",
    "resolve_override",
    "resolve_policy",
]


def resolve_override(call_site: Optional[T], location: Optional[T], global_default: T) -> T:
    """Return the first explicitly set value, falling back to *global_default*."""

    if call_site is not None:
        return call_site
    if location is not None:
        return location
    return global_default


@dataclass(frozen=True)
class PolicyOverrides:
    """Occupancy permissions as configured; ``None`` defers to the next tier."""

    allow_blocked_tiles: Optional[bool] = None
    allow_wall_tiles: Optional[bool] = None
    allow_solid_entities: Optional[bool] = None
    allow_on_player_party: Optional[bool] = None
    min_player_distance: Optional[int] = None


@dataclass(frozen=True)
class LocationSpec:
    offset: Coordinate = Coordinate(0, 0)
    shape: Shape = field(default_factory=PointShape)
    relativity: Relativity = field(default_factory=RelativeToEntity)
    policy: PolicyOverrides = field(default_factory=PolicyOverrides)


def resolve_policy(
    location: PolicyOverrides,
    defaults: GeneratorDefaults,
    call_site: PolicyOverrides | None = None,
) -> OccupancyPolicy:
    call_site = call_site or PolicyOverrides()
    distance = resolve_override(
        call_site.min_player_distance,
        location.min_player_distance,
        defaults.min_player_distance,
    )
    return OccupancyPolicy(
        allow_blocked_tiles=resolve_override(
            call_site.allow_blocked_tiles, location.allow_blocked_tiles, defaults.allow_blocked_tiles
        ),
        allow_wall_tiles=resolve_override(
            call_site.allow_wall_tiles, location.allow_wall_tiles, defaults.allow_wall_tiles
        ),
        allow_solid_entities=resolve_override(
            call_site.allow_solid_entities, location.allow_solid_entities, defaults.allow_solid_entities
        ),
        allow_on_player_party=resolve_override(
            call_site.allow_on_player_party, location.allow_on_player_party, defaults.allow_on_player_party
        ),
        min_player_distance=max(0, int(distance)),
    )


# Raw argument helpers ---------------------------------------------------
def _decode(raw: Any, what: str) -> Any:
    """Decode a JSON-encoded block; empty input means "not supplied"."""

    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            LOG.warning("%s argument is not valid JSON: %r", what, raw)
            return None
    return raw


def _decode_mapping(raw: Any, what: str) -> Dict[str, Any]:
    value = _decode(raw, what)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        LOG.warning("%s argument must be a mapping: %r", what, value)
        return {}
    return dict(value)


def _decode_list(raw: Any, what: str) -> List[Any]:
    value = _decode(raw, what)
    if value is None:
        return []
    if not isinstance(value, list):
        LOG.warning("%s argument must be a list: %r", what, value)
        return []
    return value


def _optional_bool(raw: Any) -> Optional[bool]:
    if raw is None or isinstance(raw, bool):
        return raw
    token = str(raw).strip().lower()
    if token in {"true", "1", "yes", "on"}:
        return True
    if token in {"false", "0", "no", "off"}:
        return False
    return None


def _optional_int(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    value = coerce_int(raw, default=-1)
    return value if value >= 0 else None


# Location ---------------------------------------------------------------
def parse_relativity(raw: Any) -> Relativity:
    """Parse a relativity block; an absent block means relative to the acting entity."""

    block = _decode_mapping(raw, "relativity")
    shift_block = _decode_mapping(block.get("orientational_shift"), "orientational_shift")
    shift = OrientationalShift(
        forward=coerce_int(shift_block.get("forward_shift")),
        rightward=coerce_int(shift_block.get("rightward_shift")),
    )

    mode = str(block.get("mode") or RELATIVITY_EVENT).strip()
    if mode == RELATIVITY_EVENT:
        return RelativeToEntity(entity_id=max(0, coerce_int(block.get("eventId"))), shift=shift)
    if mode == RELATIVITY_PLAYER:
        member = str(block.get("party_member") or "").strip() or None
        return RelativeToActor(selector=member, shift=shift)
    if mode != RELATIVITY_ABSOLUTE:
        LOG.debug("unknown relativity mode %r; using absolute coordinates", mode)
    return Absolute()


def _parse_regions(raw: Any) -> Tuple[int, ...]:
    regions: List[int] = []
    for entry in _decode_list(raw, "region"):
        region = coerce_int(entry)
        if not valid_region(region):
            LOG.warning("region id %r outside %s..%s; ignored", entry, 1, 255)
            continue
        regions.append(region)
    return tuple(regions)


def _parse_area(raw: Any) -> RectangleShape:
    area = _decode_mapping(raw, "area")
    if not area:
        return RectangleShape()
    return RectangleShape(
        corner1=Coordinate(coerce_int(area.get("x1")), coerce_int(area.get("y1"))),
        corner2=Coordinate(coerce_int(area.get("x2")), coerce_int(area.get("y2"))),
    )


def parse_location(raw: Any) -> LocationSpec:
    """Parse a ``location`` block into a :class:`LocationSpec`.

    ``mode`` selects the shape: ``"Coordinates"`` (a single tile),
    ``"Region"`` (every tile carrying one of ``region``'s ids) or ``"Area"``
    (the rectangle in ``area``, relative to the origin). An absent or unknown
    mode falls back to coordinates.
    """

    block = _decode_mapping(raw, "location")
    mode = str(block.get("mode") or "").strip()

    shape: Shape
    if mode == MODE_REGION:
        shape = RegionSetShape(_parse_regions(block.get("region")))
    elif mode == MODE_AREA:
        shape = _parse_area(block.get("area"))
    else:
        if mode != MODE_COORDINATES:
            LOG.info("generation location mode %r absent or unknown; using Coordinates", mode)
        shape = PointShape()

    return LocationSpec(
        offset=Coordinate(coerce_int(block.get("x")), coerce_int(block.get("y"))),
        shape=shape,
        relativity=parse_relativity(block.get("relativity")),
        policy=PolicyOverrides(
            allow_blocked_tiles=_optional_bool(block.get("gen_on_blocked_tiles")),
            allow_wall_tiles=_optional_bool(block.get("gen_on_walls")),
            allow_solid_entities=_optional_bool(block.get("gen_on_solid_events")),
            allow_on_player_party=_optional_bool(block.get("gen_on_player")),
            min_player_distance=_optional_int(block.get("gen_distance_from_player")),
        ),
    )


# Quantity ---------------------------------------------------------------
def parse_quantity(raw: Any, defaults: GeneratorDefaults) -> QuantitySpec:
    block = _decode_mapping(raw, "quantity")

    maximum = _optional_int(block.get("max"))
    minimum = _optional_int(block.get("min"))

    formula = Formula.parse(block.get("formula"))
    if formula is None:
        if block.get("formula"):
            LOG.warning("unknown quantity formula %r; using default", block.get("formula"))
        formula = Formula.parse(defaults.formula)
    if formula is None:
        LOG.warning("unknown default quantity formula %r; using Maximum", defaults.formula)
        formula = Formula.MAXIMUM

    return QuantitySpec(
        minimum=resolve_override(None, minimum, defaults.minimum),
        maximum=resolve_override(None, maximum, defaults.maximum),
        formula=formula,
        qualifying_name=str(block.get("slain_name") or ""),
    )


# Templates --------------------------------------------------------------
def parse_template_selectors(from_default_map: Any = None, from_any_map: Any = None) -> List[TemplateSelector]:
    """Build selectors from the default-map list and the ``{map, event}`` list."""

    selectors: List[TemplateSelector] = []
    for entry in _decode_list(from_default_map, "model_event_from_default_map"):
        token = str(entry if entry is not None else "").strip()
        if token:
            selectors.append(TemplateSelector(token))

    for entry in _decode_list(from_any_map, "model_event_from_any_map"):
        block = _decode_mapping(entry, "model_event_from_any_map entry")
        token = str(block.get("event") if block.get("event") is not None else "").strip()
        if not token:
            continue
        selectors.append(TemplateSelector(token, map_id=max(0, coerce_int(block.get("map")))))
    return selectors


@dataclass(frozen=True)
class GenerateArgs:
    selectors: Sequence[TemplateSelector]
    location: LocationSpec
    quantity: QuantitySpec


def parse_generate_args(args: Mapping[str, Any], defaults: GeneratorDefaults) -> GenerateArgs:
    """Parse the argument mapping of one generate command."""

    return GenerateArgs(
        selectors=parse_template_selectors(
            args.get("model_event_from_default_map"),
            args.get("model_event_from_any_map"),
        ),
        location=parse_location(args.get("location")),
        quantity=parse_quantity(args.get("quantity"), defaults),
    )
