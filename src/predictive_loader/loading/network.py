# predictive_loader/loading/network.py
"""
Network policy helpers.

Pure functions over a NetworkSnapshot: concurrency budget, "good network"
test, load time estimate and a coarse quality category.
"""

from __future__ import annotations

import math

from predictive_loader.models import EffectiveType, NetworkQuality, NetworkSnapshot

DEFAULT_RTT_MS = 100.0
DEFAULT_DOWNLINK_MBPS = 1.0
DEFAULT_SIZE_KB = 10.0


def calculate_concurrency_budget(snapshot: NetworkSnapshot, max_concurrent: int) -> int:
    """
    Maximum simultaneous loads under the given conditions.

    4g -> max, 3g -> max(2, 60% of max), 2g/slow-2g -> 1. Unknown types are
    derived from the downlink. An offline snapshot allows no loads.
    """
    if not snapshot.online:
        return 0

    effective = snapshot.effective_type
    if effective == EffectiveType.FOUR_G:
        return max_concurrent
    if effective == EffectiveType.THREE_G:
        return max(2, math.floor(max_concurrent * 0.6))
    if effective in (EffectiveType.TWO_G, EffectiveType.SLOW_TWO_G):
        return 1

    if snapshot.downlink_mbps > 5:
        return max_concurrent
    if snapshot.downlink_mbps > 2:
        return math.floor(max_concurrent * 0.6)
    return 1


def has_good_network(snapshot: NetworkSnapshot) -> bool:
    """4g, or downlink above 1.5 Mbps, or RTT under 300 ms."""
    return (
        snapshot.effective_type == EffectiveType.FOUR_G
        or snapshot.downlink_mbps > 1.5
        or 0 < snapshot.rtt_ms < 300
    )


def estimate_load_time_ms(size_kb: float | None, snapshot: NetworkSnapshot) -> float:
    """
    latency + transfer time, in milliseconds.

    Zero or missing values fall back to 100 ms RTT, 1 Mbps downlink and 10 KB.
    """
    size = size_kb or DEFAULT_SIZE_KB
    latency = snapshot.rtt_ms or DEFAULT_RTT_MS
    bandwidth = snapshot.downlink_mbps or DEFAULT_DOWNLINK_MBPS

    # KB -> bits (x 8 x 1024), Mbps -> bps (x 1024 x 1024)
    transfer_ms = (size * 8 * 1024) / (bandwidth * 1024 * 1024) * 1000
    return latency + transfer_ms


def categorize_network_quality(snapshot: NetworkSnapshot) -> NetworkQuality:
    """Map a snapshot onto excellent/good/fair/poor/offline."""
    if not snapshot.online:
        return NetworkQuality.OFFLINE

    by_type = {
        EffectiveType.FOUR_G: NetworkQuality.EXCELLENT,
        EffectiveType.THREE_G: NetworkQuality.GOOD,
        EffectiveType.TWO_G: NetworkQuality.FAIR,
        EffectiveType.SLOW_TWO_G: NetworkQuality.POOR,
    }
    if snapshot.effective_type in by_type:
        return by_type[snapshot.effective_type]

    downlink = snapshot.downlink_mbps
    rtt = snapshot.rtt_ms

    if downlink and rtt:
        if downlink >= 5 and rtt < 100:
            return NetworkQuality.EXCELLENT
        if downlink >= 2 and rtt < 200:
            return NetworkQuality.GOOD
        if downlink >= 0.5 and rtt < 400:
            return NetworkQuality.FAIR
        return NetworkQuality.POOR

    if downlink:
        if downlink >= 5:
            return NetworkQuality.EXCELLENT
        if downlink >= 2:
            return NetworkQuality.GOOD
        if downlink >= 0.5:
            return NetworkQuality.FAIR
        return NetworkQuality.POOR

    if rtt:
        if rtt < 100:
            return NetworkQuality.EXCELLENT
        if rtt < 200:
            return NetworkQuality.GOOD
        if rtt < 400:
            return NetworkQuality.FAIR
        return NetworkQuality.POOR

    return NetworkQuality.GOOD
