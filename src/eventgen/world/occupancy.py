"""Eligibility filters for spawn tiles.

Each filter only runs when its permission is off. The filters are applied
in a fixed order and never reorder the candidates, so callers sampling with
a seeded RNG get reproducible picks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Set, Tuple

from eventgen.engine.interfaces import Coordinate, EntityRegistry, MapQuery


@dataclass(frozen=True)
class OccupancyPolicy:
    allow_blocked_tiles: bool = False
    allow_wall_tiles: bool = False
    allow_solid_entities: bool = False
    allow_on_player_party: bool = False
    min_player_distance: int = 0  # 0 disables the check


def is_solid(entity: Any) -> bool:
    """True for entities that neither pass through others nor sit above/below them."""

    return not bool(getattr(entity, "through", False)) and bool(getattr(entity, "normal_priority", True))


def _positions(entities: Iterable[Any]) -> Set[Tuple[int, int]]:
    return {(int(e.x), int(e.y)) for e in entities if e is not None}


def _is_wall(map_query: MapQuery, x: int, y: int) -> bool:
    return any(map_query.is_wall_tile(code) for code in map_query.tile_layers_at(x, y))


def filter_eligible(
    tiles: Sequence[Coordinate],
    policy: OccupancyPolicy,
    *,
    map_query: MapQuery,
    entities: EntityRegistry,
) -> List[Coordinate]:
    eligible = list(tiles)

    if not policy.allow_blocked_tiles:
        eligible = [t for t in eligible if map_query.is_passable(t.x, t.y)]

    if not policy.allow_wall_tiles:
        eligible = [t for t in eligible if not _is_wall(map_query, t.x, t.y)]

    if not policy.allow_solid_entities and eligible:
        occupied = _positions(e for e in entities.entities() if is_solid(e))
        eligible = [t for t in eligible if (t.x, t.y) not in occupied]

    if not policy.allow_on_player_party and eligible:
        party = [entities.leader(), *entities.followers()]
        occupied = _positions(party)
        eligible = [t for t in eligible if (t.x, t.y) not in occupied]

    if policy.min_player_distance > 0 and eligible:
        leader = entities.leader()
        eligible = [
            t
            for t in eligible
            if map_query.distance(t.x, t.y, leader.x, leader.y) >= policy.min_player_distance
        ]

    return eligible
