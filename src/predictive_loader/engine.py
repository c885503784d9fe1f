# predictive_loader/engine.py
"""
PredictiveLoader - top-level orchestrator.

Ties the three subsystems together:
- InteractionRecorder: events -> usage graph and pattern snapshots
- PredictionCoordinator: patterns -> ranked predictions
- LoadScheduler: predictions -> budgeted, asynchronous loads

A single ``track()`` call runs one full cycle::

    record -> observe transition -> accuracy feedback -> predict
           -> update_priorities -> process_queues
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from predictive_loader.base_models import load_state
from predictive_loader.behavior import InteractionRecorder, RecorderConfig
from predictive_loader.config import DEFAULT_NETWORK_POLL_SECONDS
from predictive_loader.loading import (
    LoadScheduler,
    NetworkPoller,
    ResourceFetcher,
    SchedulerConfig,
)
from predictive_loader.loading.poller import NetworkProvider
from predictive_loader.models import (
    EventData,
    MetricsReport,
    NetworkSnapshot,
    PatternSnapshot,
    Prediction,
    QueueSizes,
    RegisteredEntity,
)
from predictive_loader.prediction import CoordinatorConfig, PredictionCoordinator

logger = logging.getLogger(__name__)


class EngineConfig(BaseModel):
    """Configuration for the whole loader."""

    recorder: RecorderConfig = Field(default_factory=RecorderConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    network_poll_seconds: float = Field(default=DEFAULT_NETWORK_POLL_SECONDS, gt=0)


class EngineState(BaseModel):
    config: EngineConfig
    coordinator: dict[str, Any]
    scheduler: dict[str, Any]


class PredictiveLoader:
    """
    Predicts which entities are needed next and preloads them.

    Usage::

        loader = PredictiveLoader(fetcher=SimulatedFetcher())
        loader.register_entity("cart", {"size_kb": 40, "locator": "/static/cart.js"})
        loader.register_entity("checkout", {"size_kb": 120, "dependencies": ["payment"]})

        predictions = loader.track("cart", {"type": "click"})
        ...
        loader.mark_used("checkout")
        print(loader.get_metrics()["preload_hit_rate"])
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        fetcher: ResourceFetcher | None = None,
        network_provider: NetworkProvider | None = None,
        clock: Callable[[], float] = time.time,
        coordinator: PredictionCoordinator | None = None,
        scheduler: LoadScheduler | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.recorder = InteractionRecorder(config=self.config.recorder, clock=clock)
        self.coordinator = coordinator or PredictionCoordinator(self.config.coordinator, clock=clock)
        self.scheduler = scheduler or LoadScheduler(self.config.scheduler, fetcher=fetcher)

        self._poller: NetworkPoller | None = None
        if network_provider is not None:
            self._poller = NetworkPoller(
                network_provider,
                self.scheduler.set_network_conditions,
                interval_seconds=self.config.network_poll_seconds,
            )

        # True while the latest prediction cycle has not been scored
        self._awaiting_feedback = False
        self._last_tracked: str | None = None

    # ------------------------------------------------------------------
    # Registration and network
    # ------------------------------------------------------------------

    def register_entity(
        self,
        entity_id: str,
        metadata: RegisteredEntity | Mapping[str, Any] | None = None,
    ) -> RegisteredEntity:
        return self.scheduler.register_entity(entity_id, metadata)

    def set_network_conditions(self, snapshot: NetworkSnapshot | Mapping[str, Any]) -> None:
        self.scheduler.set_network_conditions(snapshot)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def _recent_context(self) -> list[str]:
        recent = self.recorder.get_recent_interactions(self.config.recorder.recent_count)
        return self.coordinator.context_from(PatternSnapshot(recent_interactions=recent))

    def track(
        self,
        entity_id: str,
        event: EventData | Mapping[str, Any] | None = None,
    ) -> list[Prediction]:
        """
        Record an interaction and run one prediction and scheduling cycle.

        Must be called from within a running event loop whenever the
        resulting predictions can start a load.
        """
        context = self._recent_context()
        repeat = bool(context) and context[-1] == entity_id

        self.recorder.record(entity_id, dict(event) if isinstance(event, Mapping) else event)

        edge = self.recorder.last_transition
        if not repeat and context and edge is not None:
            # The usage graph's edge weight drives the model update
            self.coordinator.observe(context, entity_id, edge.weight)

        if self._awaiting_feedback and not repeat:
            self.coordinator.update_metrics(entity_id)
            self._awaiting_feedback = False

        self._last_tracked = entity_id
        return self.refresh()

    def refresh(self) -> list[Prediction]:
        """Predict from the current patterns and reschedule."""
        predictions = self.coordinator.predict_component_usage(
            self.recorder.get_current_patterns(),
            self.scheduler.registered_entities(),
        )
        self._awaiting_feedback = bool(predictions)

        self.scheduler.update_priorities(predictions)
        self.scheduler.process_queues()
        return predictions

    def mark_used(self, entity_id: str) -> bool:
        """
        Report that an entity was actually consumed.

        Updates preload effectiveness and, if the latest predictions have
        not been scored yet, scores them against this entity. The entity
        tracked last was already scored by track() and is skipped.
        """
        if self._awaiting_feedback and entity_id != self._last_tracked:
            self.coordinator.update_metrics(entity_id)
            self._awaiting_feedback = False
        return self.scheduler.mark_used(entity_id)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_metrics(self) -> MetricsReport:
        prediction = self.coordinator.get_metrics()
        loading = self.scheduler.metrics
        return MetricsReport(
            accuracy=prediction["accuracy"],
            total_predictions=prediction["total_predictions"],
            correct_predictions=prediction["correct_predictions"],
            loaded_count=loading.loaded_count,
            preloaded_count=loading.preloaded_count,
            used_preloaded_count=loading.used_preloaded_count,
            network_savings_kb=loading.network_savings_kb,
            failed_count=loading.failed_count,
            preload_hit_rate=loading.preload_hit_rate,
            queue_sizes=self.scheduler.queue_sizes(),
            thresholds=self.coordinator.thresholds,
        )

    def queue_sizes(self) -> QueueSizes:
        return self.scheduler.queue_sizes()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start network polling, if a provider was given."""
        if self._poller is not None:
            await self._poller.start()
        logger.info("Predictive loader started (model=%s)", self.coordinator.model_type.value)

    async def stop(self) -> None:
        """Stop polling and wait for in-flight loads."""
        if self._poller is not None:
            await self._poller.stop()
        await self.scheduler.wait_idle()
        logger.info("Predictive loader stopped")

    async def wait_idle(self) -> None:
        await self.scheduler.wait_idle()

    def reset(self) -> None:
        self.recorder.reset()
        self.coordinator.reset()
        self.scheduler.reset()
        self._awaiting_feedback = False
        self._last_tracked = None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        """Model, thresholds, registry and queues. Interaction history is not included."""
        state = EngineState(
            config=self.config,
            coordinator=self.coordinator.serialize(),
            scheduler=self.scheduler.serialize(),
        )
        return state.model_dump(mode="json")

    @classmethod
    def deserialize(
        cls,
        data: Mapping[str, Any],
        fetcher: ResourceFetcher | None = None,
        network_provider: NetworkProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> PredictiveLoader:
        state = load_state(EngineState, data, "engine")
        coordinator = PredictionCoordinator.deserialize(state.coordinator, clock=clock)
        scheduler = LoadScheduler.deserialize(state.scheduler, fetcher=fetcher)

        return cls(
            config=state.config.model_copy(update={"coordinator": coordinator.config, "scheduler": scheduler.config}),
            network_provider=network_provider,
            clock=clock,
            coordinator=coordinator,
            scheduler=scheduler,
        )
