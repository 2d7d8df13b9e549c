"""Protocol definitions for the host-engine collaborators.

The generator never touches host objects directly. A thin integration layer
adapts the host's tilemap, entity list, template data and sprite layer to the
protocols below and hands them to :class:`eventgen.services.event_generator.EventGenerator`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, NamedTuple, Optional, Protocol, Sequence

from eventgen.util.directions import DOWN


class Coordinate(NamedTuple):
    """Absolute map-tile position; validity is up to the host map."""

    x: int
    y: int


@dataclass(frozen=True)
class EntityTemplate:
    """An authored entity whose definition is copied when spawning."""

    template_id: int
    name: str = ""
    command_script: Any = None
    appearance: Any = None
    through: bool = False
    normal_priority: bool = True


@dataclass(frozen=True)
class MapInfo:
    map_id: int
    name: str


@dataclass
class GeneratedEntity:
    """A runtime entity instantiated from a template."""

    entity_id: int
    map_id: int
    model_map_id: int
    model_template_id: int
    x: int
    y: int
    name: str = ""
    gen_region: int = 0
    is_generated: bool = True
    direction: int = DOWN
    through: bool = False
    normal_priority: bool = True
    command_script: Any = None
    appearance: Any = None
    sprite: Any = field(default=None, repr=False)

    @property
    def pos(self) -> Coordinate:
        return Coordinate(self.x, self.y)


class Entity(Protocol):
    """Anything standing on the map: authored events, generated ones, actors."""

    x: int
    y: int
    direction: int


class TemplateStore(Protocol):
    def get_template(self, map_id: int, template_id: int) -> Optional[EntityTemplate]: ...

    def list_templates_on_map(self, map_id: int) -> Sequence[EntityTemplate]: ...

    def is_map_loaded(self, map_id: int) -> bool: ...

    def map_infos(self) -> Iterable[MapInfo]: ...


class MapQuery(Protocol):
    def map_id(self) -> int: ...

    def is_passable(self, x: int, y: int) -> bool:
        """True when the tile can be entered from at least one direction."""

    def region_id(self, x: int, y: int) -> int: ...

    def tile_layers_at(self, x: int, y: int) -> Sequence[int]: ...

    def is_wall_tile(self, tile_code: int) -> bool: ...

    def width(self) -> int: ...

    def height(self) -> int: ...

    def distance(self, x1: int, y1: int, x2: int, y2: int) -> float: ...


class EntityRegistry(Protocol):
    def get_entity(self, entity_id: int) -> Optional[Any]: ...

    def entities(self) -> Iterable[Any]:
        """Every live entity on the current map, generated ones included."""

    def leader(self) -> Entity: ...

    def followers(self) -> Sequence[Entity]:
        """Active (visible) followers in party order."""

    def add_entity(self, entity: GeneratedEntity) -> None: ...


class Renderer(Protocol):
    def attach_sprite(self, entity: GeneratedEntity) -> bool:
        """Attach a visual to *entity*; a second call for the same entity is a no-op."""
