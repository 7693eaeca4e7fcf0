"""
Root-cause candidate scoring, causal chain construction and hypothesis ranking.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from config import settings
from engine.constants import SEQUENTIAL_RELATIONSHIP, TYPE_PAIR_RELATIONSHIPS
from engine.correlation.alignment import chronological
from engine.enums import CorrelationType, Severity, SignalType
from engine.timestamps import elapsed_ms
from schemas.correlation import (
    CausalChain,
    CausalStep,
    Correlation,
    RootCauseHypothesis,
    Signal,
    TimelineEntry,
)

log = logging.getLogger(__name__)

POSITION_WEIGHT = 0.3
EVENT_BONUS = 0.3
SEVERITY_WEIGHT = 0.2
CAUSAL_MEMBERSHIP_BONUS = 0.2
ALTERNATIVE_BASE = 0.3
ROOT_CAUSE_RELATIONSHIP = "ROOT_CAUSE"

_HIGH = (Severity.high, Severity.critical)


def root_cause_score(signal: Signal, position: int, total: int, correlations: Sequence[Correlation]) -> float:
    score = (1 - position / total) * POSITION_WEIGHT
    if signal.type == SignalType.event:
        score += EVENT_BONUS
    score += signal.severity.score() * SEVERITY_WEIGHT
    for correlation in correlations:
        if correlation.type == CorrelationType.causal and correlation.contains(signal.id):
            score += CAUSAL_MEMBERSHIP_BONUS
    return score


def find_root_cause_candidate(signals: Sequence[Signal], correlations: Sequence[Correlation]) -> Optional[Signal]:
    """Highest additive score wins; ties keep the earlier signal."""
    ordered = chronological(signals)
    best: Optional[Signal] = None
    best_score = 0.0
    for position, signal in enumerate(ordered):
        score = root_cause_score(signal, position, len(ordered), correlations)
        if score > best_score:
            best, best_score = signal, score
    return best


def determine_relationship(cause: Signal, effect: Signal, correlations: Sequence[Correlation]) -> Tuple[str, float]:
    for correlation in correlations:
        if correlation.contains(cause.id) and correlation.contains(effect.id):
            return f"{correlation.type.value} relationship", correlation.confidence
    return TYPE_PAIR_RELATIONSHIPS.get((cause.type, effect.type), SEQUENTIAL_RELATIONSHIP)


def _chain_id(root: Signal, effects: Sequence[Signal]) -> str:
    digest = hashlib.sha1("|".join([root.id, *(e.id for e in effects)]).encode()).hexdigest()
    return f"chain-{digest[:16]}"


def infer_causality(
    correlations: Sequence[Correlation],
    signals: Sequence[Signal],
    threshold_ms: Optional[int] = None,
) -> Optional[CausalChain]:
    """Build a chain from the best-scoring root cause to every later signal inside ``threshold_ms``.

    Returns None when there is nothing to reason about or the root cause has
    no effects.
    """
    if not correlations or not signals:
        return None
    if threshold_ms is None:
        threshold_ms = settings.causality_time_threshold_ms

    ordered = chronological(signals)
    root = find_root_cause_candidate(ordered, correlations)
    if root is None:
        return None

    steps: List[CausalStep] = []
    timeline = [TimelineEntry(timestamp=root.timestamp, signal=root, relationship=ROOT_CAUSE_RELATIONSHIP)]
    for signal in ordered:
        if signal.id == root.id:
            continue
        delta = elapsed_ms(root.timestamp, signal.timestamp)
        if not 0 < delta < threshold_ms:
            continue
        relationship, confidence = determine_relationship(root, signal, correlations)
        steps.append(CausalStep(signal=signal, relationship=relationship, confidence=confidence))
        timeline.append(TimelineEntry(timestamp=signal.timestamp, signal=signal, relationship=relationship))

    if not steps:
        log.debug("root cause %s has no effects inside %dms", root.id, threshold_ms)
        return None

    effects = [step.signal for step in steps]
    return CausalChain(
        id=_chain_id(root, effects),
        root_cause=root,
        effects=effects,
        intermediate_steps=steps,
        confidence=float(np.mean([step.confidence for step in steps])),
        reasoning=f"Root cause: {root.description}. Led to {len(effects)} subsequent effects.",
        timeline=timeline,
    )


def find_trigger_event(chain: Optional[CausalChain], signals: Sequence[Signal]) -> Optional[Signal]:
    if chain is not None:
        return chain.root_cause
    events = [s for s in chronological(signals) if s.type == SignalType.event]
    severe = [e for e in events if e.severity in _HIGH]
    if severe:
        return severe[0]
    return events[0] if events else None


def generate_root_cause_hypotheses(
    chain: Optional[CausalChain],
    signals: Sequence[Signal],
    threshold_ms: Optional[int] = None,
    max_alternatives: Optional[int] = None,
) -> List[RootCauseHypothesis]:
    if threshold_ms is None:
        threshold_ms = settings.causality_time_threshold_ms
    if max_alternatives is None:
        max_alternatives = settings.max_alternative_hypotheses

    ordered = chronological(signals)
    hypotheses: List[RootCauseHypothesis] = []
    root_id = None
    if chain is not None:
        root_id = chain.root_cause.id
        hypotheses.append(RootCauseHypothesis(
            signal=chain.root_cause,
            confidence=chain.confidence,
            supporting=chain.effects,
            reasoning=chain.reasoning,
        ))

    candidates = [
        s for s in ordered
        if s.id != root_id and (s.type == SignalType.event or s.severity in _HIGH)
    ][:max_alternatives]

    alternatives = []
    for candidate in candidates:
        supporting = [
            s for s in ordered
            if 0 < elapsed_ms(candidate.timestamp, s.timestamp) < threshold_ms
        ]
        alternatives.append(RootCauseHypothesis(
            signal=candidate,
            confidence=ALTERNATIVE_BASE + candidate.severity.score() * SEVERITY_WEIGHT,
            supporting=supporting,
            reasoning=f"Alternative hypothesis: {candidate.description}",
        ))
    alternatives.sort(key=lambda h: h.confidence, reverse=True)

    return hypotheses + alternatives
