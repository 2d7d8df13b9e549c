"""Origin resolution for generation locations.

A location's x/y is either absolute or relative to a subject on the map (an
entity, or a member of the player party). Relative origins add the subject's
position plus an optional shift expressed in the subject's own frame
(forward/rightward), rotated by its facing direction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from eventgen.engine.interfaces import Coordinate, EntityRegistry
from eventgen.util.directions import orientational_shift, resolve_facing

LOG = logging.getLogger(__name__)

FollowerSelector = Callable[[], Optional[Any]]


@dataclass(frozen=True)
class OrientationalShift:
    forward: int = 0
    rightward: int = 0


NO_SHIFT = OrientationalShift()


@dataclass(frozen=True)
class Absolute:
    pass


@dataclass(frozen=True)
class RelativeToEntity:
    entity_id: int = 0  # 0 = the acting entity
    shift: OrientationalShift = NO_SHIFT


@dataclass(frozen=True)
class RelativeToActor:
    selector: Optional[str] = None  # None/"player" = default actor
    shift: OrientationalShift = NO_SHIFT


Relativity = Union[Absolute, RelativeToEntity, RelativeToActor]


def _follower_index(selector: str) -> Optional[int]:
    token = selector.strip().lower()
    if not token.startswith("follower"):
        return None
    tail = token[len("follower"):].strip()
    try:
        return int(tail)
    except ValueError:
        return None


def select_actor(
    selector: Optional[str],
    entities: EntityRegistry,
    *,
    follower_selector: FollowerSelector | None = None,
) -> Optional[Any]:
    """Return the party member addressed by *selector*, or ``None``.

    ``"Leader"`` always means the leader. ``"Follower N"`` addresses the
    N-th active follower (1-based). Anything else is the default actor: the
    follower chosen by *follower_selector* when that hook is installed,
    otherwise the leader.
    """

    token = (selector or "").strip().lower()
    if token == "leader":
        return entities.leader()

    index = _follower_index(token)
    if index is not None:
        followers = list(entities.followers())
        if 1 <= index <= len(followers):
            return followers[index - 1]
        return None

    if follower_selector is not None:
        chosen = follower_selector()
        if chosen is not None:
            return chosen
    return entities.leader()


def _shifted(subject: Any, shift: OrientationalShift, local_offset: Coordinate) -> Coordinate:
    facing = resolve_facing(getattr(subject, "direction", None)) or 0
    dx, dy = orientational_shift(facing, shift.forward, shift.rightward)
    return Coordinate(
        int(local_offset.x) + int(subject.x) + dx,
        int(local_offset.y) + int(subject.y) + dy,
    )


def resolve_origin(
    relativity: Relativity,
    local_offset: Coordinate,
    *,
    entities: EntityRegistry,
    acting_entity_id: int = 0,
    follower_selector: FollowerSelector | None = None,
) -> Coordinate:
    """Turn *local_offset* into an absolute origin according to *relativity*.

    A subject that cannot be found leaves the offset untouched, so the
    location degrades to absolute coordinates.
    """

    local_offset = Coordinate(int(local_offset[0]), int(local_offset[1]))

    if isinstance(relativity, RelativeToEntity):
        entity_id = relativity.entity_id or acting_entity_id
        subject = entities.get_entity(entity_id) if entity_id else None
        if subject is None:
            LOG.debug("relative origin entity=%s not found; using absolute %s", entity_id, local_offset)
            return local_offset
        return _shifted(subject, relativity.shift, local_offset)

    if isinstance(relativity, RelativeToActor):
        subject = select_actor(relativity.selector, entities, follower_selector=follower_selector)
        if subject is None:
            LOG.debug("relative origin actor=%r not found; using absolute %s", relativity.selector, local_offset)
            return local_offset
        return _shifted(subject, relativity.shift, local_offset)

    return local_offset
