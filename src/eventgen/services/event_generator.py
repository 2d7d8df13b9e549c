"""Batch spawning of entities cloned from templates.

:class:`EventGenerator` is the surface script triggers call into. One
``generate_batch`` runs to completion synchronously:

* the spawn goal is computed once from the quantity formula and the kill
  count recorded for the batch's map/region/name;
* the candidate tiles are enumerated once from the location's shape and
  resolved origin;
* for each unit the candidates are filtered again, because entities placed
  earlier in the batch are obstacles for the later ones. A unit with no
  eligible tile is skipped.

Generated entities get ids from 1000 upward within the current map session
and are handed to the entity registry and renderer collaborators. Failures
are logged and absorbed; nothing raised by a collaborator escapes to the
script executor.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

from eventgen.engine.interfaces import (
    Coordinate,
    EntityRegistry,
    GeneratedEntity,
    MapQuery,
    Renderer,
    TemplateStore,
)
from eventgen.engine.options import (
    LocationSpec,
    PolicyOverrides,
    parse_generate_args,
    resolve_policy,
)
from eventgen.env import GeneratorDefaults, generator_defaults
from eventgen.registries.storage import RuntimeKVStore, get_stores
from eventgen.services import random_pool
from eventgen.services.kill_ledger import KillLedger, MapGroups
from eventgen.services.quantity import QuantitySpec, effective_region, resolve_goal
from eventgen.services.templates import (
    ModelRef,
    TemplateSelector,
    resolve_map_id,
    resolve_models,
    validate_model_map,
)
from eventgen.util import coerce_int
from eventgen.world.geometry import FollowerSelector, resolve_origin
from eventgen.world.occupancy import OccupancyPolicy, filter_eligible
from eventgen.world.scope import enumerate_scope

LOG = logging.getLogger(__name__)

GENERATED_ID_BASE = 1000

__all__ = [
    "EventGenerator",
    "GENERATED_ID_BASE",
    "GenerationContext",
    "MapSession",
]


@dataclass
class MapSession:
    """Entities generated on one map since it was entered."""

    map_id: int
    generated: List[GeneratedEntity] = field(default_factory=list)

    def next_entity_id(self) -> int:
        return GENERATED_ID_BASE + len(self.generated)


@dataclass
class GenerationContext:
    """State of a single batch; built at batch start and dropped at the end."""

    acting_entity_id: int
    map_id: int
    goal: int
    gen_region: int
    models: List[ModelRef]
    origin: Coordinate
    scope: List[Coordinate]
    policy: OccupancyPolicy
    rng: random.Random
    spawned: List[GeneratedEntity] = field(default_factory=list)
    skipped: int = 0


class EventGenerator:
    """Spawn orchestrator and kill-count front end."""

    def __init__(
        self,
        templates: TemplateStore,
        map_query: MapQuery,
        entities: EntityRegistry,
        renderer: Renderer,
        ledger: KillLedger,
        *,
        defaults: GeneratorDefaults | None = None,
        rng: random.Random | None = None,
        rng_pool: random_pool.RandomPool | None = None,
        follower_selector: FollowerSelector | None = None,
    ) -> None:
        self._templates = templates
        self._map = map_query
        self._entities = entities
        self._renderer = renderer
        self._ledger = ledger
        self._defaults = defaults or generator_defaults()
        self._rng = rng
        self._rng_pool = rng_pool
        self._follower_selector = follower_selector
        self._session: Optional[MapSession] = None

    @classmethod
    def create(
        cls,
        templates: TemplateStore,
        map_query: MapQuery,
        entities: EntityRegistry,
        renderer: Renderer,
        *,
        store: RuntimeKVStore | None = None,
        defaults: GeneratorDefaults | None = None,
        rng: random.Random | None = None,
        follower_selector: FollowerSelector | None = None,
    ) -> "EventGenerator":
        """Wire a generator from environment defaults and the configured save store."""

        defaults = defaults or generator_defaults()
        kv = store if store is not None else get_stores().runtime_kv
        groups = MapGroups.parse(
            defaults.map_groups_json,
            lambda token: resolve_map_id(token, templates.map_infos()),
        )
        ledger = KillLedger(kv, groups)
        pool = random_pool.RandomPool(kv) if rng is None else None
        return cls(
            templates,
            map_query,
            entities,
            renderer,
            ledger,
            defaults=defaults,
            rng=rng,
            rng_pool=pool,
            follower_selector=follower_selector,
        )

    @property
    def defaults(self) -> GeneratorDefaults:
        return self._defaults

    @property
    def ledger(self) -> KillLedger:
        return self._ledger

    # Map session ------------------------------------------------------
    @property
    def session(self) -> MapSession:
        map_id = int(self._map.map_id())
        if self._session is None or self._session.map_id != map_id:
            self.reset_map_session(map_id)
        assert self._session is not None
        return self._session

    def reset_map_session(self, map_id: int | None = None) -> None:
        """Forget generated entities; called when the player changes maps."""

        new_id = int(self._map.map_id() if map_id is None else map_id)
        if self._session is not None:
            LOG.info(
                "map session reset map=%s -> %s dropped_generated=%s",
                self._session.map_id,
                new_id,
                len(self._session.generated),
            )
        self._session = MapSession(new_id)

    def generated_entities(self) -> List[GeneratedEntity]:
        return list(self.session.generated)

    # Randomness -------------------------------------------------------
    def _batch_rng(self, map_id: int) -> random.Random:
        if self._rng is not None:
            return self._rng
        if self._rng_pool is not None:
            return self._rng_pool.batch_rng(map_id)
        return random_pool.next_batch_rng(map_id)

    # Batch generation -------------------------------------------------
    def generate_batch(
        self,
        template_selectors: Sequence[TemplateSelector],
        location: LocationSpec,
        quantity: QuantitySpec,
        *,
        acting_entity_id: int = 0,
        policy: PolicyOverrides | None = None,
    ) -> List[GeneratedEntity]:
        """Spawn up to the quantity goal of entities; returns those created."""

        spawned: List[GeneratedEntity] = []
        try:
            context = self._begin_batch(template_selectors, location, quantity, acting_entity_id, policy)
            if context is None:
                return spawned
            context.spawned = spawned
            self._run_batch(context)
        except Exception:
            LOG.exception("event generation batch failed after %s spawn(s)", len(spawned))
        return spawned

    def generate_from_args(self, args: Mapping[str, Any], *, acting_entity_id: int = 0) -> List[GeneratedEntity]:
        """Run a generate command given its raw argument mapping."""

        try:
            parsed = parse_generate_args(args, self._defaults)
        except Exception:
            LOG.exception("generate command arguments could not be parsed")
            return []
        return self.generate_batch(
            parsed.selectors,
            parsed.location,
            parsed.quantity,
            acting_entity_id=acting_entity_id,
        )

    def _begin_batch(
        self,
        template_selectors: Sequence[TemplateSelector],
        location: LocationSpec,
        quantity: QuantitySpec,
        acting_entity_id: int,
        call_site_policy: PolicyOverrides | None,
    ) -> Optional[GenerationContext]:
        default_map = int(self._defaults.default_model_map)
        if not validate_model_map(default_map, self._templates):
            LOG.warning(
                "default model map=%s is unset or not loaded; no entities will be generated",
                default_map,
            )
            return None

        map_id = int(self._map.map_id())
        gen_region = effective_region(location.shape)
        rng = self._batch_rng(map_id)
        kill_count = self._ledger.lookup(map_id, gen_region, quantity.qualifying_name)
        goal = resolve_goal(quantity, kill_count, rng)

        models = resolve_models(template_selectors, self._templates, default_map)
        if not models:
            LOG.warning("no model templates resolved from selectors=%s", list(template_selectors))
            return None

        origin = resolve_origin(
            location.relativity,
            location.offset,
            entities=self._entities,
            acting_entity_id=acting_entity_id,
            follower_selector=self._follower_selector,
        )
        scope = enumerate_scope(location.shape, origin, self._map)
        policy = resolve_policy(location.policy, self._defaults, call_site_policy)

        return GenerationContext(
            acting_entity_id=acting_entity_id,
            map_id=map_id,
            goal=goal,
            gen_region=gen_region,
            models=models,
            origin=origin,
            scope=scope,
            policy=policy,
            rng=rng,
        )

    def _run_batch(self, context: GenerationContext) -> None:
        LOG.info(
            "generation batch map=%s goal=%s scope=%s models=%s region=%s",
            context.map_id,
            context.goal,
            len(context.scope),
            len(context.models),
            context.gen_region,
        )
        for _ in range(context.goal):
            eligible = filter_eligible(
                context.scope,
                context.policy,
                map_query=self._map,
                entities=self._entities,
            )
            if not eligible:
                context.skipped += 1
                continue
            tile = context.rng.choice(eligible)
            model = context.rng.choice(context.models)
            entity = self.generate_entity(
                model.map_id,
                model.template_id,
                tile.x,
                tile.y,
                context.gen_region,
            )
            if entity is not None:
                context.spawned.append(entity)
        LOG.info(
            "generation batch done map=%s spawned=%s skipped=%s",
            context.map_id,
            len(context.spawned),
            context.skipped,
        )

    # Single spawn -----------------------------------------------------
    def generate_entity(
        self,
        model_map_id: int,
        model_template_id: int,
        x: int,
        y: int,
        gen_region: int = 0,
        *,
        create_sprite: bool = True,
    ) -> Optional[GeneratedEntity]:
        """Clone one template onto ``(x, y)`` of the current map."""

        if not validate_model_map(model_map_id, self._templates):
            LOG.warning("invalid model map=%s; entity will not generate", model_map_id)
            return None
        if not model_template_id:
            return None

        template = self._templates.get_template(int(model_map_id), int(model_template_id))
        if template is None:
            LOG.warning("model template map=%s id=%s not found", model_map_id, model_template_id)
            return None

        session = self.session
        entity = GeneratedEntity(
            entity_id=session.next_entity_id(),
            map_id=session.map_id,
            model_map_id=int(model_map_id),
            model_template_id=int(model_template_id),
            x=int(x),
            y=int(y),
            name=template.name,
            gen_region=max(0, int(gen_region or 0)),
            through=template.through,
            normal_priority=template.normal_priority,
            command_script=template.command_script,
            appearance=template.appearance,
        )
        self._entities.add_entity(entity)
        session.generated.append(entity)

        register_by_name: Callable[[GeneratedEntity], Any] | None = getattr(
            self._entities, "register_by_name", None
        )
        if callable(register_by_name):
            register_by_name(entity)

        if create_sprite:
            self._renderer.attach_sprite(entity)

        LOG.debug(
            "generated entity id=%s name=%r model=%s:%s pos=(%s, %s) region=%s",
            entity.entity_id,
            entity.name,
            entity.model_map_id,
            entity.model_template_id,
            entity.x,
            entity.y,
            entity.gen_region,
        )
        return entity

    # Kill counts ------------------------------------------------------
    def _acting_entity(self, acting_entity_id: int) -> Optional[Any]:
        if not acting_entity_id:
            return None
        return self._entities.get_entity(int(acting_entity_id))

    def record_kill(
        self,
        map_id: int | None = None,
        name: str | None = None,
        region_id: int | None = None,
        *,
        acting_entity_id: int = 0,
    ) -> bool:
        """Count one kill; unset fields come from the current map and acting entity."""

        try:
            actor = self._acting_entity(acting_entity_id)
            resolved_map = coerce_int(map_id) or int(self._map.map_id())
            resolved_name = name or str(getattr(actor, "name", "") or "")
            resolved_region = coerce_int(region_id) or coerce_int(getattr(actor, "gen_region", 0))
            self._ledger.increment(resolved_map, resolved_region, resolved_name)
        except Exception:
            LOG.exception("recording kill failed map=%s region=%s name=%r", map_id, region_id, name)
            return False
        LOG.info("kill recorded map=%s region=%s name=%r", resolved_map, resolved_region, resolved_name)
        return True

    def record_kill_from_args(self, args: Mapping[str, Any], *, acting_entity_id: int = 0) -> bool:
        return self.record_kill(
            coerce_int(args.get("mapId")) or None,
            str(args.get("eventName") or "") or None,
            coerce_int(args.get("genRegion")) or None,
            acting_entity_id=acting_entity_id,
        )

    def get_kill_count(self, map_id: int = 0, region_id: int = 0, name: str = "") -> int:
        try:
            return self._ledger.lookup(coerce_int(map_id), coerce_int(region_id), name or "")
        except Exception:
            LOG.exception("kill count lookup failed map=%s region=%s name=%r", map_id, region_id, name)
            return 0

    # Acting-entity queries --------------------------------------------
    def was_current_entity_generated(self, acting_entity_id: int = 0) -> bool:
        return bool(getattr(self._acting_entity(acting_entity_id), "is_generated", False))

    def get_current_entity_name(self, acting_entity_id: int = 0) -> str:
        return str(getattr(self._acting_entity(acting_entity_id), "name", "") or "")

    enemy_was_generated = was_current_entity_generated
    enemy_name = get_current_entity_name
