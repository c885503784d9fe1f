# examples/01_quickstart.py
"""
🚀 QUICKSTART: Predict and preload from a click stream

Registers a handful of storefront modules, replays a short browsing
session and shows what gets predicted and preloaded after each event.
"""

import asyncio
import logging

from predictive_loader import PredictiveLoader, SimulatedFetcher

MODULES = {
    "home": {"size_kb": 30, "locator": "/static/home.js"},
    "catalog": {"size_kb": 80, "locator": "/static/catalog.js"},
    "product": {"size_kb": 60, "locator": "/static/product.js", "dependencies": ["reviews"]},
    "reviews": {"size_kb": 25, "locator": "/static/reviews.js"},
    "cart": {"size_kb": 40, "locator": "/static/cart.js"},
    "checkout": {"size_kb": 120, "locator": "/static/checkout.js", "dependencies": ["payment"]},
    "payment": {"size_kb": 90, "locator": "/static/payment.js"},
}

SESSION = ["home", "catalog", "product", "cart", "checkout"] * 3


async def main():
    logging.basicConfig(level=logging.WARNING)

    loader = PredictiveLoader(fetcher=SimulatedFetcher(time_scale=0.01))
    for name, metadata in MODULES.items():
        loader.register_entity(name, metadata)

    print("📝 Replaying a browsing session...")
    for step, entity_id in enumerate(SESSION, 1):
        loader.mark_used(entity_id)
        predictions = loader.track(entity_id, {"type": "navigation", "duration": 1500})
        top = ", ".join(f"{p.entity_id}={p.probability:.2f}" for p in predictions[:3]) or "-"
        print(f"  {step:2d}. {entity_id:<9} -> {top}")
        await loader.wait_idle()

    metrics = loader.get_metrics()
    print()
    print(f"✅ Prediction accuracy: {metrics.accuracy:.0%} over {metrics.total_predictions} cycles")
    print(f"📦 Loaded {metrics.loaded_count} modules, {metrics.used_preloaded_count} used after preload")
    print(f"💾 Network savings: {metrics.network_savings_kb:.0f} KB")


if __name__ == "__main__":
    asyncio.run(main())
