"""
Test cases for time alignment of signals and heuristic correlation detection, covering bucket boundaries, dominant modality tie breaks and the temporal, symptomatic and causal rules.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.correlation.alignment import align_by_time
from engine.correlation.heuristic import find_correlations_heuristic
from engine.enums import CorrelationType, SignalType

from conftest import at, event_signal, log_signal, metric_signal, visual_signal


def test_align_empty():
    assert align_by_time([], [], [], []) == []


def test_align_single_window():
    logs = [log_signal("l1", 5), log_signal("l2", 1)]
    metrics = [metric_signal("m1", 10)]
    events = [event_signal("e1", 0)]
    aligned = align_by_time([], logs, metrics, events, window_ms=30_000)
    assert len(aligned) == 1
    window = aligned[0]
    assert window.signal_count == 4
    assert window.timestamp == at(0)
    assert window.window.end == at(30)
    assert [s.id for s in window.logs] == ["l2", "l1"]
    assert window.dominant_signal_type == SignalType.log


def test_align_separates_distant_signals():
    aligned = align_by_time([], [log_signal("l1", 0)], [metric_signal("m1", 300)], [], window_ms=30_000)
    assert len(aligned) == 2
    assert aligned[0].logs[0].id == "l1"
    assert aligned[1].metrics[0].id == "m1"
    assert aligned[1].window.start == at(300)


def test_align_bucket_boundary_is_half_open():
    aligned = align_by_time([], [log_signal("l1", 0), log_signal("l2", 30)], [], [], window_ms=30_000)
    assert [len(w.logs) for w in aligned] == [1, 1]


def test_align_omits_empty_buckets():
    aligned = align_by_time([], [log_signal("l1", 0), log_signal("l2", 95)], [], [], window_ms=30_000)
    assert [w.window.start for w in aligned] == [at(0), at(90)]


def test_dominant_type_tie_break():
    aligned = align_by_time(
        [visual_signal("v1", 1)],
        [log_signal("l1", 2)],
        [metric_signal("m1", 3)],
        [event_signal("e1", 4)],
        window_ms=30_000,
    )
    assert aligned[0].dominant_signal_type == SignalType.visual

    aligned = align_by_time([], [log_signal("l1", 2)], [metric_signal("m1", 3), metric_signal("m2", 4)], [])
    assert aligned[0].dominant_signal_type == SignalType.metric


def test_align_rejects_non_positive_window():
    with pytest.raises(ValueError):
        align_by_time([], [log_signal("l1", 0)], [], [], window_ms=0)


def test_heuristic_skips_single_signal_windows():
    aligned = align_by_time([], [log_signal("l1", 0, "critical")], [], [], window_ms=30_000)
    assert find_correlations_heuristic(aligned, 0.0, 20) == []


def test_heuristic_emits_all_three_kinds():
    aligned = align_by_time(
        [],
        [log_signal("l1", 10, "critical")],
        [metric_signal("m1", 12)],
        [event_signal("e1", 2), event_signal("e2", 20)],
        window_ms=30_000,
    )
    correlations = find_correlations_heuristic(aligned, 0.4, 20)
    kinds = [c.type for c in correlations]
    assert kinds == [CorrelationType.causal, CorrelationType.symptomatic, CorrelationType.temporal]

    causal, symptomatic, temporal = correlations
    assert causal.confidence == 0.7
    assert [s.id for s in causal.signals] == ["e1", "l1"]
    assert causal.timestamp == at(2)
    assert causal.description == "1 events preceded 1 errors"
    assert causal.time_span.duration_ms == 8_000

    assert symptomatic.confidence == 0.6
    assert [s.id for s in symptomatic.signals] == ["l1", "m1"]
    assert symptomatic.description == "1 errors correlated with 1 metric changes"

    # severity scores: critical 1.0, medium 0.5 x3 -> avg 0.625
    assert temporal.confidence == pytest.approx(0.3 + 0.625 * 0.2)
    assert len(temporal.signals) == 4
    assert temporal.description == "4 signals occurred within 30s"
    assert temporal.reasoning == "Temporal co-occurrence of log, metric, event signals"
    assert temporal.time_span.duration_ms == 30_000


def test_temporal_gated_by_min_confidence():
    aligned = align_by_time([], [log_signal("l1", 0, "low"), log_signal("l2", 1, "low")], [], [], window_ms=30_000)
    assert find_correlations_heuristic(aligned, 0.5, 20) == []
    relaxed = find_correlations_heuristic(aligned, 0.3, 20)
    assert [c.type for c in relaxed] == [CorrelationType.temporal]
    assert relaxed[0].confidence == pytest.approx(0.35)


def test_temporal_confidence_all_critical():
    signals = [log_signal(f"l{i}", i, "critical") for i in range(3)]
    aligned = align_by_time([], signals, [], [], window_ms=30_000)
    temporal = find_correlations_heuristic(aligned, 0.0, 20)[0]
    assert temporal.confidence == pytest.approx(0.5)


def test_causal_requires_event_before_first_error():
    aligned = align_by_time([], [log_signal("l1", 0, "high")], [], [event_signal("e1", 5)], window_ms=30_000)
    kinds = [c.type for c in find_correlations_heuristic(aligned, 0.0, 20)]
    assert CorrelationType.causal not in kinds


def test_heuristic_truncates_and_sorts():
    logs = []
    metrics = []
    for w in range(5):
        logs.append(log_signal(f"l{w}", w * 60, "critical"))
        metrics.append(metric_signal(f"m{w}", w * 60 + 1))
    aligned = align_by_time([], logs, metrics, [], window_ms=30_000)
    correlations = find_correlations_heuristic(aligned, 0.0, 3)
    assert len(correlations) == 3
    confidences = [c.confidence for c in correlations]
    assert confidences == sorted(confidences, reverse=True)


def test_correlation_ids_are_deterministic():
    def run():
        aligned = align_by_time([], [log_signal("l1", 0, "critical")], [metric_signal("m1", 1)], [], window_ms=30_000)
        return [c.id for c in find_correlations_heuristic(aligned, 0.0, 20)]

    assert run() == run()
