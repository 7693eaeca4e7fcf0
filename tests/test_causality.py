"""
Test cases for root cause scoring, causal chain construction, trigger selection and hypothesis ranking.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.correlation.alignment import align_by_time
from engine.correlation.causality import (
    determine_relationship,
    find_root_cause_candidate,
    find_trigger_event,
    generate_root_cause_hypotheses,
    infer_causality,
)
from engine.correlation.heuristic import find_correlations_heuristic
from engine.enums import CorrelationType
from schemas.correlation import Correlation, TimeSpan

from conftest import at, event_signal, log_signal, metric_signal, visual_signal


def correlation(kind, signals, confidence=0.5):
    start = min(s.timestamp for s in signals)
    end = max(s.timestamp for s in signals)
    return Correlation(
        id=f"corr-{kind.value}",
        timestamp=start,
        signals=signals,
        type=kind,
        confidence=confidence,
        description="test",
        reasoning="test",
        time_span=TimeSpan(start=start, end=end, duration_ms=int((end - start).total_seconds() * 1000)),
    )


def incident_signals():
    return [
        event_signal("deploy", 0, "medium", "Deployment api revision 7"),
        log_signal("error", 30, "high", "upstream timeout"),
        metric_signal("latency", 60, "medium", "latency_p99 at 2.5"),
    ]


def test_infer_causality_empty_inputs():
    signals = incident_signals()
    assert infer_causality([], signals) is None
    assert infer_causality([correlation(CorrelationType.temporal, signals)], []) is None


def test_event_log_metric_chain():
    signals = incident_signals()
    aligned = align_by_time([], [signals[1]], [signals[2]], [signals[0]], window_ms=120_000)
    correlations = find_correlations_heuristic(aligned, 0.5, 20)
    assert [c.type for c in correlations] == [CorrelationType.causal, CorrelationType.symptomatic]

    chain = infer_causality(correlations, signals, threshold_ms=300_000)
    assert chain is not None
    assert chain.root_cause.id == "deploy"
    assert [e.id for e in chain.effects] == ["error", "latency"]

    to_error, to_latency = chain.intermediate_steps
    assert to_error.relationship == "causal relationship"
    assert to_error.confidence == 0.7
    assert to_latency.relationship == "Event caused metric change"
    assert to_latency.confidence == 0.5
    assert chain.confidence == pytest.approx(0.6)
    assert chain.reasoning == "Root cause: Deployment api revision 7. Led to 2 subsequent effects."
    assert [entry.relationship for entry in chain.timeline] == [
        "ROOT_CAUSE", "causal relationship", "Event caused metric change",
    ]


def test_chain_without_effects_is_none():
    signals = [event_signal("deploy", 0), log_signal("error", 400)]
    correlations = [correlation(CorrelationType.temporal, signals)]
    assert infer_causality(correlations, signals, threshold_ms=300_000) is None


def test_effects_exclude_simultaneous_signals():
    signals = [event_signal("deploy", 0), log_signal("error", 0), metric_signal("latency", 10)]
    chain = infer_causality([correlation(CorrelationType.temporal, signals)], signals, threshold_ms=300_000)
    assert [e.id for e in chain.effects] == ["latency"]


def test_root_cause_prefers_causal_membership():
    early_log = log_signal("early", 0, "high")
    late_event = event_signal("late", 10, "low")
    other = metric_signal("m", 20)
    correlations = [correlation(CorrelationType.causal, [early_log, other], 0.7)]
    # early: 0.3 + 0.15 + 0.2 = 0.65; late: 0.2 + 0.3 + 0.05 = 0.55
    root = find_root_cause_candidate([late_event, other, early_log], correlations)
    assert root.id == "early"


def test_root_cause_sorts_by_time_before_scoring():
    signals = [log_signal("b", 10, "high"), log_signal("a", 0, "high")]
    assert find_root_cause_candidate(signals, []).id == "a"


def test_determine_relationship_fallbacks():
    log = log_signal("l", 0)
    visual = visual_signal("v", 5)
    metric = metric_signal("m", 5)
    assert determine_relationship(log, visual, []) == ("Errors manifested in dashboard", 0.7)
    assert determine_relationship(event_signal("e", 0), log, []) == ("Event triggered error logs", 0.6)
    assert determine_relationship(metric, log, []) == ("Sequential occurrence", 0.4)

    shared = [
        correlation(CorrelationType.symptomatic, [log, metric], 0.6),
        correlation(CorrelationType.temporal, [log, metric], 0.9),
    ]
    assert determine_relationship(log, metric, shared) == ("symptomatic relationship", 0.6)


def test_find_trigger_event():
    signals = [
        log_signal("error", 5, "critical"),
        event_signal("info-event", 0, "low"),
        event_signal("crash", 10, "high"),
        event_signal("oom", 20, "critical"),
    ]
    assert find_trigger_event(None, signals).id == "crash"
    assert find_trigger_event(None, signals[:2]).id == "info-event"
    assert find_trigger_event(None, [log_signal("error", 0)]) is None

    chain = infer_causality([correlation(CorrelationType.temporal, signals)], signals)
    assert find_trigger_event(chain, signals).id == chain.root_cause.id


def test_hypotheses_with_chain():
    signals = [
        event_signal("deploy", 0, "medium"),
        log_signal("err-1", 10, "high"),
        log_signal("err-2", 20, "critical"),
        metric_signal("latency", 30, "medium"),
        event_signal("scale", 40, "low"),
        log_signal("err-3", 50, "high"),
    ]
    chain = infer_causality([correlation(CorrelationType.causal, signals[:2], 0.7)], signals)
    hypotheses = generate_root_cause_hypotheses(chain, signals, threshold_ms=300_000, max_alternatives=3)

    assert hypotheses[0].signal.id == chain.root_cause.id == "deploy"
    assert hypotheses[0].confidence == chain.confidence
    assert [s.id for s in hypotheses[0].supporting] == [e.id for e in chain.effects]

    alternatives = hypotheses[1:]
    assert len(alternatives) == 3
    assert [h.signal.id for h in alternatives] == ["err-2", "err-1", "scale"]
    assert alternatives[0].confidence == pytest.approx(0.5)
    assert alternatives[0].reasoning == "Alternative hypothesis: log err-2"
    assert [s.id for s in alternatives[0].supporting] == ["latency", "scale", "err-3"]


def test_hypotheses_without_chain():
    signals = [metric_signal("m", 0), log_signal("err", 10, "high")]
    hypotheses = generate_root_cause_hypotheses(None, signals, threshold_ms=300_000, max_alternatives=3)
    assert [h.signal.id for h in hypotheses] == ["err"]
    assert hypotheses[0].supporting == []
    assert hypotheses[0].signal.timestamp == at(10)
