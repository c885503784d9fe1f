# predictive_loader/loading/scheduler.py
"""
LoadScheduler - priority queues and a network-aware concurrency budget.

Per entity id::

    unregistered -> registered -> queued(high|medium|low) -> loading -> loaded

Invariants:
- an id sits in at most one of high/medium/low/loading/loaded
- process_queues() never starts a load past the current budget
  (a network downgrade does not cancel loads already in flight)
- load_entity() on a loading or loaded id changes nothing

Loads run as asyncio tasks on the running loop. Completions are applied
on the loop thread, so the scheduler's state is only mutated from one
logical thread of control.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from predictive_loader.base_models import DictCompatModel, load_state
from predictive_loader.config import DEFAULT_MAX_CONCURRENT_LOADS
from predictive_loader.exceptions import InvalidModelStateError, SchedulerNotRunningError
from predictive_loader.loading.fetcher import ResourceFetcher, SimulatedFetcher
from predictive_loader.loading.network import (
    calculate_concurrency_budget,
    estimate_load_time_ms,
    has_good_network,
)
from predictive_loader.models import (
    HintKind,
    LoaderMetrics,
    NetworkSnapshot,
    Prediction,
    Priority,
    QueueSizes,
    RegisteredEntity,
)

logger = logging.getLogger(__name__)

# Drain order
TIERS = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)

# Load time used when not adapting to the network
FIXED_LOAD_TIME_MS = 100.0


class SchedulerConfig(BaseModel):
    """Configuration for the load scheduler."""

    high_priority_threshold: float = Field(
        default=0.8, ge=0.0, le=1.0, description="Probability above which an id is high priority"
    )
    medium_priority_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Probability above which an id is medium priority"
    )
    max_concurrent_loads: int = Field(default=DEFAULT_MAX_CONCURRENT_LOADS, ge=1)
    adapt_to_network: bool = Field(default=True, description="Derive budget and load time from network conditions")


class QueueState(DictCompatModel):
    """Point-in-time view of the queues and load sets."""

    high: list[str] = Field(default_factory=list)
    medium: list[str] = Field(default_factory=list)
    low: list[str] = Field(default_factory=list)
    loading: list[str] = Field(default_factory=list)
    loaded: list[str] = Field(default_factory=list)
    network: NetworkSnapshot = Field(default_factory=NetworkSnapshot)


class QueueSnapshot(BaseModel):
    high: list[str] = Field(default_factory=list)
    medium: list[str] = Field(default_factory=list)
    low: list[str] = Field(default_factory=list)


class SchedulerState(BaseModel):
    config: SchedulerConfig
    network: NetworkSnapshot
    registry: list[RegisteredEntity]
    queues: QueueSnapshot
    loaded: list[str]
    metrics: LoaderMetrics = Field(default_factory=LoaderMetrics)


class LoadScheduler:
    """
    Turns predictions into a bounded number of concurrent loads.

    Usage::

        scheduler = LoadScheduler(fetcher=SimulatedFetcher())
        scheduler.register_entity("checkout", {"size_kb": 120, "dependencies": ["payment"]})
        scheduler.update_priorities(predictions)
        scheduler.process_queues()
        await scheduler.wait_idle()
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        fetcher: ResourceFetcher | None = None,
        network: NetworkSnapshot | None = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self.fetcher: ResourceFetcher = fetcher or SimulatedFetcher()
        self._network = network or NetworkSnapshot()

        self._registry: dict[str, RegisteredEntity] = {}
        # Insertion-ordered sets
        self._queues: dict[Priority, dict[str, None]] = {tier: {} for tier in TIERS}
        self._loading: dict[str, Priority] = {}
        self._loaded: dict[str, None] = {}
        self._hints: dict[str, HintKind] = {}

        self._metrics = LoaderMetrics()
        self._tasks: set[asyncio.Task[None]] = set()
        # Bumped on reset so stale completions are ignored
        self._generation = 0

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_entity(
        self,
        entity_id: str,
        metadata: RegisteredEntity | Mapping[str, Any] | None = None,
    ) -> RegisteredEntity:
        """Insert or overwrite an entity's metadata. Queue membership is untouched."""
        if isinstance(metadata, RegisteredEntity):
            entity = metadata.model_copy(update={"id": entity_id})
        else:
            entity = RegisteredEntity.model_validate({**dict(metadata or {}), "id": entity_id})
        self._registry[entity_id] = entity
        return entity

    def get_entity(self, entity_id: str) -> RegisteredEntity | None:
        return self._registry.get(entity_id)

    def registered_entities(self) -> list[RegisteredEntity]:
        return list(self._registry.values())

    def is_loaded(self, entity_id: str) -> bool:
        return entity_id in self._loaded

    def is_loading(self, entity_id: str) -> bool:
        return entity_id in self._loading

    @property
    def network(self) -> NetworkSnapshot:
        return self._network

    # ------------------------------------------------------------------
    # Network policy
    # ------------------------------------------------------------------

    def calculate_concurrency_budget(self) -> int:
        if not self._network.online:
            return 0
        if not self.config.adapt_to_network:
            return self.config.max_concurrent_loads
        return calculate_concurrency_budget(self._network, self.config.max_concurrent_loads)

    def has_good_network(self) -> bool:
        if not self.config.adapt_to_network:
            return True
        return has_good_network(self._network)

    def estimate_load_time(self, entity: RegisteredEntity) -> float:
        if not self.config.adapt_to_network:
            return FIXED_LOAD_TIME_MS
        return estimate_load_time_ms(entity.size_kb, self._network)

    def set_network_conditions(self, snapshot: NetworkSnapshot | Mapping[str, Any]) -> None:
        """Replace the network snapshot and rebalance the queues."""
        if not isinstance(snapshot, NetworkSnapshot):
            snapshot = NetworkSnapshot.model_validate(dict(snapshot))

        if snapshot != self._network:
            logger.info(
                "Network changed: %s %.1fMbps %.0fms online=%s",
                snapshot.effective_type.value,
                snapshot.downlink_mbps,
                snapshot.rtt_ms,
                snapshot.online,
            )
        self._network = snapshot
        self.process_queues()

    # ------------------------------------------------------------------
    # Queues
    # ------------------------------------------------------------------

    def _tier_for(self, probability: float) -> Priority:
        if probability > self.config.high_priority_threshold:
            return Priority.HIGH
        if probability > self.config.medium_priority_threshold:
            return Priority.MEDIUM
        return Priority.LOW

    def _dequeue(self, entity_id: str) -> None:
        for queue in self._queues.values():
            queue.pop(entity_id, None)

    def update_priorities(self, predictions: Iterable[Prediction]) -> None:
        """
        Rebuild the queues from a fresh set of predictions.

        Loading and loaded ids are skipped. High entries get a prefetch
        hint, medium entries a preconnect hint. Nothing is drained here.
        """
        for queue in self._queues.values():
            queue.clear()

        for prediction in predictions:
            entity_id = prediction.entity_id
            if entity_id in self._loading or entity_id in self._loaded:
                continue

            tier = self._tier_for(prediction.probability)
            self._dequeue(entity_id)
            self._queues[tier][entity_id] = None

            if tier == Priority.HIGH:
                self._issue_hint(entity_id, HintKind.PREFETCH)
            elif tier == Priority.MEDIUM:
                self._issue_hint(entity_id, HintKind.PRECONNECT)

    def process_queues(self) -> int:
        """Start loads in tier order up to the budget. Returns the number started."""
        remaining = self.calculate_concurrency_budget() - len(self._loading)
        started = 0

        for tier in TIERS:
            if remaining <= 0:
                break
            if tier == Priority.LOW and not self.has_good_network():
                break
            count = self._drain(tier, remaining)
            remaining -= count
            started += count

        if started:
            logger.debug("Started %d loads (%d in flight)", started, len(self._loading))
        return started

    def _drain(self, tier: Priority, slots: int) -> int:
        queue = self._queues[tier]
        started = 0
        for entity_id in list(queue):
            if started >= slots:
                break
            if self.load_entity(entity_id, tier):
                started += 1
            else:
                queue.pop(entity_id, None)
        return started

    def queue_sizes(self) -> QueueSizes:
        return QueueSizes(
            high=len(self._queues[Priority.HIGH]),
            medium=len(self._queues[Priority.MEDIUM]),
            low=len(self._queues[Priority.LOW]),
        )

    def get_queue_state(self) -> QueueState:
        return QueueState(
            high=list(self._queues[Priority.HIGH]),
            medium=list(self._queues[Priority.MEDIUM]),
            low=list(self._queues[Priority.LOW]),
            loading=list(self._loading),
            loaded=list(self._loaded),
            network=self._network,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_entity(self, entity_id: str, priority: Priority = Priority.LOW) -> bool:
        """
        Start loading an entity. Returns True if a load was started.

        Raises:
            SchedulerNotRunningError: no asyncio event loop is running.
        """
        if entity_id in self._loading or entity_id in self._loaded:
            return False

        entity = self._registry.get(entity_id)
        if entity is None:
            logger.warning("Attempted to load unknown entity: %s", entity_id)
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SchedulerNotRunningError(f"Cannot load {entity_id!r} without a running event loop") from exc

        self._dequeue(entity_id)
        self._loading[entity_id] = priority
        estimated_ms = self.estimate_load_time(entity)

        task = loop.create_task(self._run_load(entity, priority, estimated_ms, self._generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug("Loading %s (%s, ~%.0fms)", entity_id, priority.value, estimated_ms)
        return True

    async def _run_load(
        self,
        entity: RegisteredEntity,
        priority: Priority,
        estimated_ms: float,
        generation: int,
    ) -> None:
        try:
            elapsed_ms = await self.fetcher.fetch(entity.locator, estimated_ms)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Failed to load %s", entity.id)
            if generation == self._generation:
                self._on_failed(entity.id)
            return

        if generation == self._generation:
            self._on_loaded(entity.id, priority, elapsed_ms)

    def _on_loaded(self, entity_id: str, priority: Priority, elapsed_ms: float) -> None:
        if self._loading.pop(entity_id, None) is None:
            return

        self._loaded[entity_id] = None
        self._clear_hint(entity_id)

        entity = self._registry.get(entity_id)
        if entity is not None:
            self._enqueue_dependencies(entity)

        self._metrics.loaded_count += 1
        if priority == Priority.HIGH:
            self._metrics.preloaded_count += 1

        logger.debug("Loaded %s with %s priority in %.0fms", entity_id, priority.value, elapsed_ms)
        self.process_queues()

    def _on_failed(self, entity_id: str) -> None:
        if self._loading.pop(entity_id, None) is None:
            return
        self._clear_hint(entity_id)
        self._metrics.failed_count += 1
        self.process_queues()

    def _enqueue_dependencies(self, entity: RegisteredEntity) -> None:
        for dependency in sorted(entity.dependencies):
            if dependency in self._loaded or dependency in self._loading:
                continue
            self._dequeue(dependency)
            self._queues[Priority.MEDIUM][dependency] = None

    async def wait_idle(self) -> None:
        """Wait until no loads are in flight, including loads started by completions."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Hints
    # ------------------------------------------------------------------

    def _issue_hint(self, entity_id: str, kind: HintKind) -> None:
        # A preconnect may be upgraded to a prefetch, never the reverse
        current = self._hints.get(entity_id)
        if current is not None and (current == kind or current == HintKind.PREFETCH):
            return
        entity = self._registry.get(entity_id)
        if entity is None or not entity.locator:
            return
        try:
            self.fetcher.hint(entity_id, kind, entity.locator)
        except Exception as exc:
            logger.warning("Resource hint %s failed for %s: %s", kind.value, entity_id, exc)
            return
        self._hints[entity_id] = kind

    def _clear_hint(self, entity_id: str) -> None:
        if entity_id not in self._hints:
            return
        self._hints.pop(entity_id, None)
        try:
            self.fetcher.clear_hint(entity_id)
        except Exception as exc:
            logger.warning("Clearing resource hint failed for %s: %s", entity_id, exc)

    @property
    def outstanding_hints(self) -> set[str]:
        return set(self._hints)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def mark_used(self, entity_id: str) -> bool:
        """
        Record that an entity was actually consumed.

        Returns True if it had already been loaded, i.e. the preload paid off.
        """
        entity = self._registry.get(entity_id)
        if entity is None:
            logger.warning("mark_used called for unknown entity: %s", entity_id)
            return False
        if entity_id not in self._loaded:
            return False

        self._metrics.used_preloaded_count += 1
        self._metrics.network_savings_kb += entity.size_kb
        return True

    @property
    def metrics(self) -> LoaderMetrics:
        return self._metrics.model_copy()

    def get_metrics(self) -> dict[str, Any]:
        return {
            **self._metrics.model_dump(),
            "preload_hit_rate": self._metrics.preload_hit_rate,
            "queue_sizes": self.queue_sizes().model_dump(),
            "loading_count": len(self._loading),
            "concurrency_budget": self.calculate_concurrency_budget(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """
        Forget every entity, queue and counter.

        In-flight loads keep running but their completions are ignored.
        """
        self._generation += 1
        for entity_id in list(self._hints):
            self._clear_hint(entity_id)
        for queue in self._queues.values():
            queue.clear()
        self._loading.clear()
        self._loaded.clear()
        self._registry.clear()
        self._metrics = LoaderMetrics()

    async def close(self) -> None:
        """Stop queuing, let in-flight loads finish and clear outstanding hints."""
        for queue in self._queues.values():
            queue.clear()
        await self.wait_idle()
        for entity_id in list(self._hints):
            self._clear_hint(entity_id)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        """Snapshot registry, queues, loaded set and metrics. In-flight loads are omitted."""
        state = SchedulerState(
            config=self.config,
            network=self._network,
            registry=list(self._registry.values()),
            queues=QueueSnapshot(
                high=list(self._queues[Priority.HIGH]),
                medium=list(self._queues[Priority.MEDIUM]),
                low=list(self._queues[Priority.LOW]),
            ),
            loaded=list(self._loaded),
            metrics=self._metrics,
        )
        data = state.model_dump(mode="json")
        for entry in data["registry"]:
            entry["dependencies"] = sorted(entry["dependencies"])
        return data

    @classmethod
    def deserialize(
        cls,
        data: Mapping[str, Any],
        fetcher: ResourceFetcher | None = None,
    ) -> LoadScheduler:
        state = load_state(SchedulerState, data, "scheduler")

        seen: set[str] = set(state.loaded)
        for tier in (state.queues.high, state.queues.medium, state.queues.low):
            if len(set(tier)) != len(tier):
                raise InvalidModelStateError("scheduler", f"duplicate ids in queue: {tier}")
            overlap = seen.intersection(tier)
            if overlap:
                raise InvalidModelStateError("scheduler", f"ids in more than one queue: {sorted(overlap)}")
            seen.update(tier)

        scheduler = cls(config=state.config, fetcher=fetcher, network=state.network)
        scheduler._registry = {entity.id: entity for entity in state.registry}
        scheduler._queues = {
            Priority.HIGH: dict.fromkeys(state.queues.high),
            Priority.MEDIUM: dict.fromkeys(state.queues.medium),
            Priority.LOW: dict.fromkeys(state.queues.low),
        }
        scheduler._loaded = dict.fromkeys(state.loaded)
        scheduler._metrics = state.metrics
        return scheduler
