# examples/02_model_comparison.py
"""
📊 MODEL COMPARISON: Conditional vs Markov vs Attention

Replays synthetic sessions through each model and compares their top-3
hit rates with Welch's t-test.
"""

import random

from predictive_loader.analysis import compare_models, evaluate_model
from predictive_loader.models import RegisteredEntity
from predictive_loader.prediction import create_model

FLOWS = [
    ["home", "catalog", "product", "cart", "checkout"],
    ["home", "search", "product", "reviews", "product", "cart"],
    ["home", "account", "orders", "order-detail"],
]


def generate_sessions(count: int, seed: int = 42) -> list[list[str]]:
    rng = random.Random(seed)
    sessions = []
    for _ in range(count):
        flow = list(rng.choice(FLOWS))
        # Occasionally cut a session short
        if rng.random() < 0.3:
            flow = flow[: rng.randint(2, len(flow))]
        sessions.append(flow)
    return sessions


def main():
    sessions = generate_sessions(200)
    candidates = [RegisteredEntity(id=name) for name in sorted({e for flow in FLOWS for e in flow})]

    print("📊 Hit rates (top-3, online learning):")
    for model_type in ("conditional", "markov", "attention"):
        result = evaluate_model(create_model(model_type), sessions, candidates)
        interval = result.interval
        print(f"  {model_type:<12} {result.hit_rate:.3f}  [{interval.lower:.3f}, {interval.upper:.3f}]")

    comparison = compare_models(create_model("conditional"), create_model("markov"), sessions, candidates)
    test = comparison.test
    print()
    print(f"🔬 markov vs conditional: {comparison.improvement:+.3f}")
    print(f"   t={test.t_statistic:.2f} df={test.df:.1f} p={test.p_value:.4f} d={test.cohens_d:.2f}")
    print("   ✅ significant" if test.significant else "   ➖ not significant")


if __name__ == "__main__":
    main()
