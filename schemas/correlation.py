"""
Unified signal envelope, time-aligned buckets, correlations and causal chains.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from engine.enums import CorrelationType, Severity, SignalType
from schemas.base import NpModel, UtcDatetime
from schemas.ingestion import InfraEvent, Metric, MetricAnomaly, NormalizedLog


class Signal(NpModel):

    id: str
    type: SignalType
    timestamp: UtcDatetime
    source: str
    severity: Severity
    description: str
    data: Any = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class VisualAnomaly(NpModel):

    type: str
    description: str = ""
    severity: str = "medium"
    location: Optional[str] = None


class VisualMetric(NpModel):

    name: str
    value: float
    unit: str = ""
    status: str = ""


class VisualObservation(NpModel):

    frame_id: str
    system_state: Literal["healthy", "degraded", "critical"] = "healthy"
    anomalies: List[VisualAnomaly] = Field(default_factory=list)
    metrics: List[VisualMetric] = Field(default_factory=list)


class VisualSignal(Signal):

    type: Literal[SignalType.visual] = SignalType.visual
    data: VisualObservation


class LogSignal(Signal):

    type: Literal[SignalType.log] = SignalType.log
    data: NormalizedLog


class MetricSignal(Signal):

    type: Literal[SignalType.metric] = SignalType.metric
    data: Union[MetricAnomaly, Metric]


class EventSignal(Signal):

    type: Literal[SignalType.event] = SignalType.event
    data: InfraEvent


AnySignal = Annotated[
    Union[VisualSignal, LogSignal, MetricSignal, EventSignal],
    Field(discriminator="type"),
]


class TimeWindow(NpModel):

    start: UtcDatetime
    end: UtcDatetime


class AlignedData(NpModel):

    timestamp: UtcDatetime
    window: TimeWindow
    visual: List[VisualSignal] = Field(default_factory=list)
    logs: List[LogSignal] = Field(default_factory=list)
    metrics: List[MetricSignal] = Field(default_factory=list)
    events: List[EventSignal] = Field(default_factory=list)
    signal_count: int
    dominant_signal_type: Optional[SignalType] = None

    def all_signals(self) -> List[Signal]:
        return [*self.visual, *self.logs, *self.metrics, *self.events]


class TimeSpan(NpModel):

    start: UtcDatetime
    end: UtcDatetime
    duration_ms: int


class Correlation(NpModel):

    id: str
    timestamp: UtcDatetime
    signals: List[AnySignal]
    type: CorrelationType
    confidence: float = Field(ge=0.0, le=1.0)
    description: str
    reasoning: str
    time_span: TimeSpan

    def contains(self, signal_id: str) -> bool:
        return any(s.id == signal_id for s in self.signals)


class CausalStep(NpModel):

    signal: AnySignal
    relationship: str
    confidence: float


class TimelineEntry(NpModel):

    timestamp: UtcDatetime
    signal: AnySignal
    relationship: str


class CausalChain(NpModel):

    id: str
    root_cause: AnySignal
    effects: List[AnySignal] = Field(min_length=1)
    intermediate_steps: List[CausalStep]
    confidence: float
    reasoning: str
    timeline: List[TimelineEntry]


class RootCauseHypothesis(NpModel):

    signal: AnySignal
    confidence: float
    supporting: List[AnySignal]
    reasoning: str


class CorrelationSummary(NpModel):

    total_signals: int
    time_windows: int
    correlations_found: int
    has_causal_chain: bool
    confidence_score: float


class CorrelationResult(NpModel):

    aligned_data: List[AlignedData]
    correlations: List[Correlation]
    causal_chain: Optional[CausalChain] = None
    trigger_event: Optional[AnySignal] = None
    root_cause_hypotheses: List[RootCauseHypothesis]
    summary: CorrelationSummary
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def empty(cls, **metadata: Any) -> CorrelationResult:
        return cls(
            aligned_data=[],
            correlations=[],
            causal_chain=None,
            trigger_event=None,
            root_cause_hypotheses=[],
            summary=CorrelationSummary(
                total_signals=0,
                time_windows=0,
                correlations_found=0,
                has_causal_chain=False,
                confidence_score=0.0,
            ),
            metadata=metadata,
        )
