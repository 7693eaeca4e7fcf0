"""
Heuristic correlation detection over aligned time windows.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

import numpy as np

from config import settings
from engine.enums import CorrelationType, Severity
from engine.timestamps import elapsed_ms
from schemas.correlation import AlignedData, Correlation, Signal, TimeSpan

log = logging.getLogger(__name__)

TEMPORAL_BASE = 0.3
TEMPORAL_SEVERITY_WEIGHT = 0.2
TEMPORAL_CAP = 0.8
SYMPTOMATIC_CONFIDENCE = 0.6
CAUSAL_CONFIDENCE = 0.7

_HIGH = (Severity.high, Severity.critical)


def correlation_id(kind: CorrelationType, signals: Iterable[Signal]) -> str:
    digest = hashlib.sha1("|".join([kind.value, *(s.id for s in signals)]).encode()).hexdigest()
    return f"corr-{digest[:16]}"


def span_of(signals: Sequence[Signal]) -> TimeSpan:
    start = min(s.timestamp for s in signals)
    end = max(s.timestamp for s in signals)
    return TimeSpan(start=start, end=end, duration_ms=int(elapsed_ms(start, end)))


def _dedupe(signals: Iterable[Signal]) -> List[Signal]:
    seen = set()
    unique = []
    for signal in signals:
        if signal.id not in seen:
            seen.add(signal.id)
            unique.append(signal)
    return unique


def _correlation(
    kind: CorrelationType,
    timestamp: datetime,
    signals: List[Signal],
    confidence: float,
    description: str,
    reasoning: str,
    time_span: TimeSpan,
) -> Correlation:
    return Correlation(
        id=correlation_id(kind, signals),
        timestamp=timestamp,
        signals=signals,
        type=kind,
        confidence=confidence,
        description=description,
        reasoning=reasoning,
        time_span=time_span,
    )


def temporal_correlation(window: AlignedData, min_confidence: float) -> Optional[Correlation]:
    signals = window.all_signals()
    avg_severity = float(np.mean([s.severity.score() for s in signals]))
    confidence = min(TEMPORAL_BASE + avg_severity * TEMPORAL_SEVERITY_WEIGHT, TEMPORAL_CAP)
    if confidence < min_confidence:
        return None

    types = list(dict.fromkeys(s.type.value for s in signals))
    start, end = window.window.start, window.window.end
    return _correlation(
        CorrelationType.temporal,
        window.timestamp,
        signals,
        confidence,
        f"{len(signals)} signals occurred within {elapsed_ms(start, end) / 1000:g}s",
        f"Temporal co-occurrence of {', '.join(types)} signals",
        TimeSpan(start=start, end=end, duration_ms=int(elapsed_ms(start, end))),
    )


def symptomatic_correlation(window: AlignedData) -> Optional[Correlation]:
    errors = [s for s in window.all_signals() if s.severity in _HIGH]
    if not errors or not window.metrics:
        return None

    signals = _dedupe([*errors, *window.metrics])
    return _correlation(
        CorrelationType.symptomatic,
        window.timestamp,
        signals,
        SYMPTOMATIC_CONFIDENCE,
        f"{len(errors)} errors correlated with {len(window.metrics)} metric changes",
        "Errors and metric anomalies occurring together suggest symptomatic relationship",
        span_of(signals),
    )


def causal_correlation(window: AlignedData) -> Optional[Correlation]:
    errors = [s for s in window.all_signals() if s.severity in _HIGH]
    if not errors or not window.events:
        return None

    first_error = min(s.timestamp for s in errors)
    preceding = [e for e in window.events if e.timestamp < first_error]
    if not preceding:
        return None

    signals = _dedupe([*preceding, *errors])
    return _correlation(
        CorrelationType.causal,
        preceding[0].timestamp,
        signals,
        CAUSAL_CONFIDENCE,
        f"{len(preceding)} events preceded {len(errors)} errors",
        "Events occurring before errors may indicate causal relationship",
        span_of(signals),
    )


def find_correlations_heuristic(
    aligned: Sequence[AlignedData],
    min_confidence: Optional[float] = None,
    max_correlations: Optional[int] = None,
) -> List[Correlation]:
    """Emit temporal, symptomatic and causal candidates for every window with two or more signals.

    Only the temporal candidate is gated on ``min_confidence``; the fixed
    symptomatic and causal confidences are always kept. The merged list is
    sorted by confidence and truncated to ``max_correlations``.
    """
    if min_confidence is None:
        min_confidence = settings.min_correlation_confidence
    if max_correlations is None:
        max_correlations = settings.max_correlations

    found: List[Correlation] = []
    for window in aligned:
        if window.signal_count < 2:
            continue
        for candidate in (
            temporal_correlation(window, min_confidence),
            symptomatic_correlation(window),
            causal_correlation(window),
        ):
            if candidate is not None:
                found.append(candidate)

    found.sort(key=lambda c: c.confidence, reverse=True)
    log.debug("heuristic correlation: %d candidates over %d windows", len(found), len(aligned))
    return found[:max_correlations]
