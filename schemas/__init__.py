"""
Data records exchanged between the ingestion layer, the correlation engine and downstream consumers.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from schemas.base import NpModel
from schemas.evidence import Evidence
from schemas.ingestion import (
    Deploy,
    ErrorLog,
    ErrorSpike,
    EventTimeline,
    GitCommit,
    InfraEvent,
    K8sEvent,
    K8sMetrics,
    LogGroup,
    LogParserResult,
    Metric,
    MetricAnomaly,
    MetricComparison,
    MetricProcessorResult,
    MetricSummary,
    NormalizedLog,
    TriggerCandidate,
)
from schemas.correlation import (
    AlignedData,
    AnySignal,
    CausalChain,
    Correlation,
    CorrelationResult,
    EventSignal,
    LogSignal,
    MetricSignal,
    RootCauseHypothesis,
    Signal,
    VisualSignal,
)

__all__ = [
    "NpModel",
    "Evidence",
    "Deploy",
    "ErrorLog",
    "ErrorSpike",
    "EventTimeline",
    "GitCommit",
    "InfraEvent",
    "K8sEvent",
    "K8sMetrics",
    "LogGroup",
    "LogParserResult",
    "Metric",
    "MetricAnomaly",
    "MetricComparison",
    "MetricProcessorResult",
    "MetricSummary",
    "NormalizedLog",
    "TriggerCandidate",
    "AlignedData",
    "AnySignal",
    "CausalChain",
    "Correlation",
    "CorrelationResult",
    "EventSignal",
    "LogSignal",
    "MetricSignal",
    "RootCauseHypothesis",
    "Signal",
    "VisualSignal",
]
