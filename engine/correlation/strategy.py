"""
Pluggable correlation strategies: local heuristics and an external reasoning service with heuristic fallback.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Sequence

from config import settings
from datasources.exceptions import ReasoningResponseError
from engine.correlation.alignment import chronological
from engine.correlation.heuristic import correlation_id, find_correlations_heuristic, span_of
from engine.enums import CorrelationType
from schemas.correlation import AlignedData, Correlation, Signal

log = logging.getLogger(__name__)

EXTERNAL_DEFAULT_CONFIDENCE = 0.5
EXTERNAL_REASONING = "Identified by external reasoning analysis"


class ReasoningClient(Protocol):
    async def correlate(self, incident_id: str, windows: List[Dict[str, Any]]) -> Dict[str, Any]: ...


class CorrelationStrategy(ABC):
    name: str = ""

    @abstractmethod
    async def find_correlations(self, aligned: Sequence[AlignedData], incident_id: str) -> List[Correlation]: ...


class HeuristicStrategy(CorrelationStrategy):
    name = "heuristic"

    def __init__(self, min_confidence: Optional[float] = None, max_correlations: Optional[int] = None) -> None:
        self.min_confidence = settings.min_correlation_confidence if min_confidence is None else min_confidence
        self.max_correlations = settings.max_correlations if max_correlations is None else max_correlations

    async def find_correlations(self, aligned: Sequence[AlignedData], incident_id: str) -> List[Correlation]:
        return self.find(aligned)

    def find(self, aligned: Sequence[AlignedData]) -> List[Correlation]:
        return find_correlations_heuristic(aligned, self.min_confidence, self.max_correlations)


def build_windows_payload(aligned: Sequence[AlignedData]) -> List[Dict[str, Any]]:
    return [
        {
            "timestamp": window.timestamp.isoformat(),
            "dominant_signal_type": window.dominant_signal_type.value if window.dominant_signal_type else None,
            "signals": [
                {
                    "id": s.id,
                    "type": s.type.value,
                    "timestamp": s.timestamp.isoformat(),
                    "source": s.source,
                    "severity": s.severity.value,
                    "description": s.description,
                }
                for s in window.all_signals()
            ],
        }
        for window in aligned
    ]


def _match_signals(item: Dict[str, Any], signals: Sequence[Signal]) -> List[Signal]:
    wanted_ids = {str(i) for i in item.get("signal_ids") or []}
    descriptions = [str(d).lower() for d in item.get("signal_descriptions") or [] if d]

    matched = []
    for signal in signals:
        if signal.id in wanted_ids:
            matched.append(signal)
            continue
        text = signal.description.lower()
        if text and any(d in text or text in d for d in descriptions):
            matched.append(signal)
    return matched


def _confidence(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return EXTERNAL_DEFAULT_CONFIDENCE
    if value != value:
        return EXTERNAL_DEFAULT_CONFIDENCE
    return min(max(value, 0.0), 1.0)


def parse_reasoning_response(response: Any, aligned: Sequence[AlignedData]) -> List[Correlation]:
    """Map the service's correlation groupings back onto our signals.

    Raises ``ReasoningResponseError`` when the response shape is wrong. A
    well-formed response whose groupings match fewer than two signals each
    yields an empty list.
    """
    if not isinstance(response, dict) or not isinstance(response.get("correlations"), list):
        raise ReasoningResponseError("reasoning response has no correlations list")

    signals = chronological([s for window in aligned for s in window.all_signals()])
    correlations: List[Correlation] = []
    for item in response["correlations"]:
        if not isinstance(item, dict):
            raise ReasoningResponseError(f"unexpected correlation entry: {item!r:.100}")
        matched = _match_signals(item, signals)
        if len(matched) < 2:
            continue
        try:
            kind = CorrelationType(item.get("type"))
        except ValueError:
            kind = CorrelationType.temporal
        correlations.append(Correlation(
            id=correlation_id(kind, matched),
            timestamp=matched[0].timestamp,
            signals=matched,
            type=kind,
            confidence=_confidence(item.get("confidence", EXTERNAL_DEFAULT_CONFIDENCE)),
            description=str(item.get("description") or f"{len(matched)} related signals"),
            reasoning=str(item.get("reasoning") or EXTERNAL_REASONING),
            time_span=span_of(matched),
        ))
    return correlations


class ExternalReasoningStrategy(CorrelationStrategy):
    """Delegate to a reasoning service; any failure is logged and answered by ``fallback``."""

    name = "external"

    def __init__(
        self,
        client: ReasoningClient,
        fallback: Optional[HeuristicStrategy] = None,
        timeout: Optional[float] = None,
        max_correlations: Optional[int] = None,
    ) -> None:
        self.client = client
        self.fallback = fallback or HeuristicStrategy()
        self.timeout = settings.reasoning_timeout_seconds if timeout is None else timeout
        self.max_correlations = settings.max_correlations if max_correlations is None else max_correlations

    async def find_correlations(self, aligned: Sequence[AlignedData], incident_id: str) -> List[Correlation]:
        try:
            response = await asyncio.wait_for(
                self.client.correlate(incident_id, build_windows_payload(aligned)),
                timeout=self.timeout,
            )
            correlations = parse_reasoning_response(response, aligned)
        except asyncio.TimeoutError:
            log.warning("reasoning service timed out after %.1fs for incident=%s; using heuristics", self.timeout, incident_id)
            return self.fallback.find(aligned)
        except Exception as exc:
            log.warning("reasoning service failed for incident=%s: %s; using heuristics", incident_id, exc)
            return self.fallback.find(aligned)

        correlations.sort(key=lambda c: c.confidence, reverse=True)
        log.info("reasoning service returned %d correlations for incident=%s", len(correlations), incident_id)
        return correlations[: self.max_correlations]
