"""
Canonical per-modality records produced by the log parser, metric processor and event stream.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import ConfigDict, Field

from engine.enums import (
    Direction,
    EventSeverity,
    InfraEventType,
    LogLevel,
    Severity,
    Trend,
)
from schemas.base import NpModel, UtcDatetime


class NormalizedLog(NpModel):

    id: str
    timestamp: UtcDatetime
    level: LogLevel
    source: str
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    raw: str = ""
    error_type: Optional[str] = None
    stack_trace: Optional[str] = None
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    pod_name: Optional[str] = None
    container_name: Optional[str] = None


class ErrorLog(NormalizedLog):

    error_type: str
    occurrences: int
    first_seen: UtcDatetime
    last_seen: UtcDatetime
    affected_pods: List[str] = Field(default_factory=list)


class LogGroup(NpModel):

    start_time: UtcDatetime
    end_time: UtcDatetime
    logs: List[NormalizedLog]
    error_count: int
    warn_count: int
    dominant_level: LogLevel


class ErrorSpike(NpModel):

    start: UtcDatetime
    end: UtcDatetime
    count: int
    baseline_rate: float
    spike_rate: float
    types: List[str]
    samples: List[NormalizedLog]


class TimeRange(NpModel):

    start: UtcDatetime
    end: UtcDatetime


class LogSummary(NpModel):

    total_logs: int
    error_count: int
    warn_count: int
    time_range: TimeRange
    dominant_level: LogLevel


class LogParserResult(NpModel):

    logs: List[NormalizedLog]
    errors: List[ErrorLog]
    groups: List[LogGroup]
    spikes: List[ErrorSpike]
    summary: LogSummary


class Metric(NpModel):
    model_config = ConfigDict(frozen=True)

    name: str
    timestamp: UtcDatetime
    value: float
    labels: Dict[str, str] = Field(default_factory=dict)


class MetricAnomaly(NpModel):

    metric: str
    timestamp: UtcDatetime
    value: float
    expected_range: Tuple[float, float]
    deviation: float
    severity: Severity
    labels: Dict[str, str] = Field(default_factory=dict)


class MetricSummary(NpModel):

    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    min: float
    max: float
    avg: float
    current: float
    trend: Trend
    anomaly_score: float = Field(ge=0.0, le=1.0)
    data_points: int


class MetricComparison(NpModel):

    metric: str
    labels: Dict[str, str] = Field(default_factory=dict)
    current_value: float
    baseline_value: float
    change_percent: float
    significant: bool
    direction: Direction


class K8sMetrics(NpModel):

    cpu: MetricSummary
    memory: MetricSummary
    request_rate: MetricSummary
    error_rate: MetricSummary
    latency_p99: MetricSummary


class MetricProcessorResult(NpModel):

    metrics: List[Metric]
    summaries: List[MetricSummary]
    anomalies: List[MetricAnomaly]
    comparisons: List[MetricComparison]


class InfraEvent(NpModel):

    id: str
    type: InfraEventType
    timestamp: UtcDatetime
    description: str
    actor: str
    target: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    severity: EventSeverity


class GitCommit(NpModel):

    sha: str
    message: str
    author: str
    timestamp: UtcDatetime
    files: List[str] = Field(default_factory=list)


class Deploy(NpModel):

    id: str
    revision: int = 0
    image: str = ""
    timestamp: UtcDatetime
    triggered_by: str
    status: Literal["pending", "in_progress", "completed", "failed"] = "completed"
    namespace: str = "default"
    deployment: str


class InvolvedObject(NpModel):

    kind: str = "Unknown"
    name: str = "unknown"
    namespace: str = "default"


class EventSource(NpModel):

    component: str = "unknown"
    host: Optional[str] = None


class K8sEvent(NpModel):

    uid: str
    type: Literal["Normal", "Warning"] = "Normal"
    reason: str = ""
    message: str = ""
    involved_object: InvolvedObject = Field(default_factory=InvolvedObject)
    first_timestamp: UtcDatetime
    last_timestamp: UtcDatetime
    count: int = 1
    source: EventSource = Field(default_factory=EventSource)


class TimelineSummary(NpModel):

    total_events: int
    deploy_count: int
    warning_count: int
    critical_count: int


class EventTimeline(NpModel):

    events: List[InfraEvent]
    deployments: List[Deploy]
    start_time: UtcDatetime
    end_time: UtcDatetime
    summary: TimelineSummary


class TriggerCandidate(NpModel):

    event: InfraEvent
    trigger_score: float = Field(ge=0.0, le=1.0)
    reasoning: str
