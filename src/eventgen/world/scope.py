from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from eventgen.engine.interfaces import Coordinate, MapQuery

LOG = logging.getLogger(__name__)

REGION_MIN = 1
REGION_MAX = 255


@dataclass(frozen=True)
class PointShape:
    pass


@dataclass(frozen=True)
class RegionSetShape:
    regions: Tuple[int, ...] = ()


@dataclass(frozen=True)
class RectangleShape:
    # Offsets from the origin; ``None`` means no area data was supplied.
    corner1: Optional[Coordinate] = None
    corner2: Optional[Coordinate] = None


Shape = Union[PointShape, RegionSetShape, RectangleShape]


def valid_region(region_id: int) -> bool:
    return REGION_MIN <= int(region_id) <= REGION_MAX


def rectangle_tiles(shape: RectangleShape, origin: Coordinate) -> List[Coordinate]:
    if shape.corner1 is None and shape.corner2 is None:
        return []
    c1 = shape.corner1 or Coordinate(0, 0)
    c2 = shape.corner2 or Coordinate(0, 0)
    x1, x2 = sorted((origin.x + c1.x, origin.x + c2.x))
    y1, y2 = sorted((origin.y + c1.y, origin.y + c2.y))
    return [Coordinate(x, y) for y in range(y1, y2 + 1) for x in range(x1, x2 + 1)]


def region_tiles(shape: RegionSetShape, map_query: MapQuery) -> List[Coordinate]:
    wanted = frozenset(int(r) for r in shape.regions)
    if not wanted:
        return []
    tiles: List[Coordinate] = []
    for y in range(int(map_query.height())):
        for x in range(int(map_query.width())):
            if map_query.region_id(x, y) in wanted:
                tiles.append(Coordinate(x, y))
    return tiles


def enumerate_scope(shape: Shape, origin: Coordinate, map_query: MapQuery) -> List[Coordinate]:
    """Return every candidate tile for *shape* anchored at *origin*.

    Rectangles cover the inclusive box between ``origin + corner1`` and
    ``origin + corner2`` in row-major order. Region sets scan the whole map.
    An empty rectangle or region scope degrades to the origin tile.
    """

    origin = Coordinate(int(origin[0]), int(origin[1]))

    if isinstance(shape, RectangleShape):
        tiles = rectangle_tiles(shape, origin)
        if not tiles:
            LOG.warning("No area defined for rectangle generation; using origin %s", origin)
            return [origin]
        return tiles

    if isinstance(shape, RegionSetShape):
        tiles = region_tiles(shape, map_query)
        if not tiles:
            LOG.warning(
                "No tiles matched regions %s; using origin %s",
                list(shape.regions),
                origin,
            )
            return [origin]
        return tiles

    return [origin]
