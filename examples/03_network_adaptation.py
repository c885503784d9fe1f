# examples/03_network_adaptation.py
"""
📶 NETWORK ADAPTATION: Budgets follow the connection

Drives the scheduler directly and shows how the concurrency budget and the
low-priority tier react when the connection degrades and recovers.
"""

import asyncio

from predictive_loader import LoadScheduler, Prediction, SimulatedFetcher
from predictive_loader.loading import categorize_network_quality

CONDITIONS = [
    ("fast", {"effective_type": "4g", "downlink_mbps": 10, "rtt_ms": 50}),
    ("degraded", {"effective_type": "3g", "downlink_mbps": 1, "rtt_ms": 400}),
    ("edge", {"effective_type": "2g", "downlink_mbps": 0.2, "rtt_ms": 900}),
    ("offline", {"online": False}),
]


async def main():
    scheduler = LoadScheduler(fetcher=SimulatedFetcher(time_scale=0.001))

    for label, conditions in CONDITIONS:
        scheduler.reset()
        for i in range(8):
            scheduler.register_entity(f"widget-{i}", {"size_kb": 50, "locator": f"/static/widget-{i}.js"})

        scheduler.set_network_conditions(conditions)
        probabilities = [0.95, 0.9, 0.7, 0.6, 0.3, 0.2, 0.1, 0.05]
        scheduler.update_priorities(
            [Prediction(entity_id=f"widget-{i}", probability=p) for i, p in enumerate(probabilities)]
        )
        started = scheduler.process_queues()

        quality = categorize_network_quality(scheduler.network).value
        sizes = scheduler.queue_sizes()
        print(
            f"📶 {label:<9} quality={quality:<9} budget={scheduler.calculate_concurrency_budget()} "
            f"started={started} queued(h/m/l)={sizes.high}/{sizes.medium}/{sizes.low}"
        )
        await scheduler.close()


if __name__ == "__main__":
    asyncio.run(main())
