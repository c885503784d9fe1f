# tests/test_recorder.py
"""
Tests for the interaction recorder.

Covers:
- interaction_metric weighting (duration, viewport coverage, recency)
- record(): event construction, unknown event types, payload validation
- Usage graph EMA updates and last_transition
- Retention pruning
- Recent interactions, density, primary entities, context sequence
- Pattern complexity and navigation pattern detection
- Feature vector, analysis export and reset
"""

import pytest
from pydantic import ValidationError

from predictive_loader.behavior import InteractionRecorder, RecorderConfig, interaction_metric
from predictive_loader.models import EventData, NavigationPattern

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_recorder(clock, **config) -> InteractionRecorder:
    return InteractionRecorder(config=RecorderConfig(**config), clock=clock)


def _record_all(recorder: InteractionRecorder, ids, event_type: str = "click") -> None:
    for entity_id in ids:
        recorder.record(entity_id, {"type": event_type})


# ---------------------------------------------------------------------------
# interaction_metric
# ---------------------------------------------------------------------------


class TestInteractionMetric:
    def test_base_only(self):
        assert interaction_metric(0.9) == 0.9

    def test_all_factors(self):
        # 0.9 * 1.25 * 1.15 * 0.8
        metric = interaction_metric(0.9, duration_ms=5000, viewport_coverage=0.5, recency_ms=60000)
        assert metric == pytest.approx(1.035)

    def test_duration_capped_at_ten_seconds(self):
        assert interaction_metric(1.0, duration_ms=60000) == pytest.approx(1.5)

    def test_stale_recency_zeroes_metric(self):
        assert interaction_metric(1.0, recency_ms=10 * 60000) == 0.0

    def test_zero_fields_are_ignored(self):
        assert interaction_metric(0.7, duration_ms=0, viewport_coverage=0, recency_ms=0) == 0.7


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class TestRecord:
    def test_record_builds_event(self, clock):
        recorder = _make_recorder(clock)
        clock.advance(12)

        event = recorder.record("cart", {"type": "click", "duration": 2000})

        assert event.entity_id == "cart"
        assert event.event_type == "click"
        assert event.base_weight == 0.9
        assert event.metric == pytest.approx(0.9 * 1.1)
        assert event.timestamp == clock.now
        assert event.session_time == pytest.approx(12)
        assert len(recorder) == 1

    def test_unknown_event_type_uses_fallback_weight(self, clock):
        recorder = _make_recorder(clock)
        event = recorder.record("cart", {"type": "telepathy"})
        assert event.base_weight == 0.3

    def test_missing_payload_defaults(self, clock):
        recorder = _make_recorder(clock)
        event = recorder.record("cart")
        assert event.event_type == "unknown"
        assert event.base_weight == 0.3

    def test_accepts_event_data_instance(self, clock):
        recorder = _make_recorder(clock)
        event = recorder.record("cart", EventData(type="hover"))
        assert event.base_weight == 0.7

    def test_explicit_timestamp_is_kept(self, clock):
        recorder = _make_recorder(clock)
        event = recorder.record("cart", {"type": "click", "timestamp": clock.now - 5})
        assert event.timestamp == clock.now - 5

    def test_invalid_coverage_rejected(self, clock):
        recorder = _make_recorder(clock)
        with pytest.raises(ValidationError):
            recorder.record("cart", {"type": "click", "viewport_coverage": 1.5})

    def test_custom_event_weights(self, clock):
        recorder = _make_recorder(clock, event_weights={"tap": 0.99})
        assert recorder.record("cart", {"type": "tap"}).base_weight == 0.99


# ---------------------------------------------------------------------------
# Usage graph
# ---------------------------------------------------------------------------


class TestUsageGraph:
    def test_first_event_creates_node_without_edge(self, clock):
        recorder = _make_recorder(clock)
        recorder.record("A", {"type": "click"})

        assert recorder.transition_edges() == []
        assert recorder.last_transition is None

    def test_edge_weight_is_ema_of_metric(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B"])

        assert recorder.edge_weight("A", "B") == pytest.approx(0.27)
        assert recorder.last_transition.source == "A"
        assert recorder.last_transition.target == "B"

        _record_all(recorder, ["A", "B"])
        assert recorder.edge_weight("A", "B") == pytest.approx(0.27 * 0.7 + 0.27)
        assert recorder.edge_weight("B", "A") == pytest.approx(0.27)

    def test_repeated_entity_does_not_self_link(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "A"])

        assert recorder.edge_weight("A", "A") == 0.0
        assert recorder.last_transition is None

    def test_previous_distinct_entity_is_linked(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "B"])

        # The second B looks past itself to A
        assert recorder.edge_weight("A", "B") == pytest.approx(0.27 * 0.7 + 0.27)

    def test_edges_are_never_negative(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C", "A", "C", "B"])
        assert all(edge.weight >= 0 for edge in recorder.transition_edges())


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------


class TestRetention:
    def test_old_events_pruned(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B"])

        clock.advance(31 * 60)
        recorder.record("C", {"type": "click"})

        assert [e.entity_id for e in recorder.history] == ["C"]

    def test_graph_survives_pruning(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B"])

        clock.advance(31 * 60)
        recorder.record("C", {"type": "click"})

        assert recorder.edge_weight("A", "B") > 0

    def test_events_inside_window_kept(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A"])
        clock.advance(29 * 60)
        _record_all(recorder, ["B"])
        assert len(recorder) == 2


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_recent_interactions_newest_first(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C"])

        recent = recorder.get_recent_interactions(2)
        assert [e.entity_id for e in recent] == ["C", "B"]

    def test_recent_interactions_zero(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A"])
        assert recorder.get_recent_interactions(0) == []

    def test_interaction_density(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C"])
        clock.advance(120)
        assert recorder.interaction_density() == pytest.approx(1.5)

    def test_density_floor_on_fresh_session(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C"])
        assert recorder.interaction_density() == pytest.approx(30.0)

    def test_primary_entities_ranked_by_total_metric(self, clock):
        recorder = _make_recorder(clock)
        recorder.record("A", {"type": "click"})
        recorder.record("B", {"type": "hover"})
        recorder.record("A", {"type": "click"})

        primary = recorder.identify_primary_entities()
        assert [p.entity_id for p in primary] == ["A", "B"]
        assert primary[0].importance == pytest.approx(1.8)

    def test_primary_entities_explicit_count(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C"])

        assert recorder.identify_primary_entities(0) == []
        assert len(recorder.identify_primary_entities(2)) == 2
        assert len(recorder.identify_primary_entities()) == 3

    def test_current_patterns_context_sequence(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "A", "B", "C", "C"])

        patterns = recorder.get_current_patterns()
        assert patterns.context_sequence() == ["A", "B", "C"]
        assert patterns.context_sequence(2) == ["B", "C"]
        assert len(patterns.recent_interactions) == 5
        assert patterns.primary_importance()["C"] == pytest.approx(1.8)


# ---------------------------------------------------------------------------
# Pattern analysis
# ---------------------------------------------------------------------------


class TestPatternAnalysis:
    def test_complexity_empty(self, clock):
        assert _make_recorder(clock).pattern_complexity() == 0.0

    def test_complexity_two_entities(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B"])
        # 0.2 * 0.4 + (1/9) * 0.3 + 0.5 * 0.3
        assert recorder.pattern_complexity() == pytest.approx(0.08 + 0.3 / 9 + 0.15)

    def test_small_graph_is_unknown(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C"])

        patterns = recorder.detect_navigation_patterns()
        assert patterns.dominant == NavigationPattern.UNKNOWN
        assert patterns.linear == patterns.branching == patterns.cyclic == 0.0

    def test_linear_chain(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C", "D", "E"])

        patterns = recorder.detect_navigation_patterns()
        assert patterns.linear == 0.7
        assert patterns.branching == 0.0
        assert patterns.dominant == NavigationPattern.LINEAR

    def test_hub_is_branching(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["H", "A", "H", "B", "H", "C", "H", "D", "H", "E"])

        patterns = recorder.detect_navigation_patterns()
        assert patterns.linear == 0.0
        assert patterns.branching > 0.8
        assert patterns.dominant == NavigationPattern.BRANCHING

    def test_three_cycle_counted(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C", "A", "B", "C", "D"])

        assert recorder.count_cycles() == 1
        assert recorder.detect_navigation_patterns().cyclic == pytest.approx(0.2)

    def test_two_cycles_not_counted(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "A", "B"])
        assert recorder.count_cycles() == 0

    def test_long_chain_does_not_exhaust_the_stack(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, [f"E{i}" for i in range(2000)])

        patterns = recorder.detect_navigation_patterns()
        assert patterns.dominant == NavigationPattern.LINEAR
        assert recorder.count_cycles() == 0
        assert len(recorder.generate_feature_vector()) == 5

    def test_long_ring_is_one_cycle(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, [f"E{i}" for i in range(2000)] + ["E0"])

        assert recorder.count_cycles() == 1

    def test_feature_vector(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "C", "D", "E"])

        vector = recorder.generate_feature_vector()
        assert len(vector) == 5
        assert vector[2] == 0.7


# ---------------------------------------------------------------------------
# Export and reset
# ---------------------------------------------------------------------------


class TestExportAndReset:
    def test_export(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B", "A"])
        clock.advance(30)

        export = recorder.export_analysis_data()
        assert export.interaction_count == 3
        assert export.session_duration == pytest.approx(30)
        assert export.primary_entities[0].entity_id == "A"
        assert {(e.source, e.target) for e in export.transition_edges} == {("A", "B"), ("B", "A")}

    def test_reset(self, clock):
        recorder = _make_recorder(clock)
        _record_all(recorder, ["A", "B"])
        clock.advance(10)

        recorder.reset()

        assert len(recorder) == 0
        assert recorder.transition_edges() == []
        assert recorder.last_transition is None
        assert recorder.session_start == clock.now
