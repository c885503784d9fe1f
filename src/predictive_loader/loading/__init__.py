# predictive_loader/loading/__init__.py
"""
Loading layer: network policy, resource fetching and the load scheduler.
"""

from predictive_loader.loading.fetcher import ResourceFetcher, SimulatedFetcher
from predictive_loader.loading.network import (
    calculate_concurrency_budget,
    categorize_network_quality,
    estimate_load_time_ms,
    has_good_network,
)
from predictive_loader.loading.poller import NetworkPoller
from predictive_loader.loading.scheduler import (
    LoadScheduler,
    QueueState,
    SchedulerConfig,
)

__all__ = [
    # Network policy
    "calculate_concurrency_budget",
    "categorize_network_quality",
    "estimate_load_time_ms",
    "has_good_network",
    "NetworkPoller",
    # Fetching
    "ResourceFetcher",
    "SimulatedFetcher",
    # Scheduler
    "LoadScheduler",
    "QueueState",
    "SchedulerConfig",
]
