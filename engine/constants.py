from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from engine.enums import EventSeverity, InfraEventType, LogLevel, Severity, SignalType

K8S_REASON_EVENT_TYPES: Mapping[str, InfraEventType] = MappingProxyType({
    # rollout
    "ScalingReplicaSet": InfraEventType.deploy,
    "SuccessfulCreate": InfraEventType.deploy,
    "Scheduled": InfraEventType.deploy,
    "Pulling": InfraEventType.deploy,
    "Pulled": InfraEventType.deploy,
    "Created": InfraEventType.deploy,
    "Started": InfraEventType.deploy,
    # scaling
    "ScaledUp": InfraEventType.scale,
    "ScaledDown": InfraEventType.scale,
    # restarts
    "Killing": InfraEventType.restart,
    "Restarting": InfraEventType.restart,
    # rollbacks
    "RollbackInProgress": InfraEventType.rollback,
    "RollbackComplete": InfraEventType.rollback,
    # crashes
    "BackOff": InfraEventType.pod_crash,
    "Failed": InfraEventType.pod_crash,
    "OOMKilling": InfraEventType.oom_kill,
    "OOMKilled": InfraEventType.oom_kill,
    # configuration
    "ConfigMapUpdated": InfraEventType.config_change,
    "SecretUpdated": InfraEventType.config_change,
})

K8S_CRITICAL_REASONS: frozenset[str] = frozenset({
    "OOMKilling",
    "OOMKilled",
    "Failed",
    "BackOff",
    "Unhealthy",
})

# free-text severity vocabulary used by evidence records
SEVERITY_VOCABULARY: Mapping[str, Severity] = MappingProxyType({
    "critical": Severity.critical,
    "fatal": Severity.critical,
    "high": Severity.high,
    "error": Severity.high,
    "medium": Severity.medium,
    "warning": Severity.medium,
    "warn": Severity.medium,
})

SIGNAL_TO_EVENT_SEVERITY: Mapping[Severity, EventSeverity] = MappingProxyType({
    Severity.critical: EventSeverity.critical,
    Severity.high: EventSeverity.warning,
    Severity.medium: EventSeverity.warning,
    Severity.low: EventSeverity.info,
})

SEVERITY_SCORES: Mapping[Severity, float] = MappingProxyType({
    Severity.critical: 1.0,
    Severity.high: 0.75,
    Severity.medium: 0.5,
    Severity.low: 0.25,
})

# highest first
LEVEL_PRECEDENCE: tuple[LogLevel, ...] = (
    LogLevel.fatal,
    LogLevel.error,
    LogLevel.warn,
    LogLevel.info,
    LogLevel.debug,
)

# iteration order doubles as the dominant-type tie break
SIGNAL_TYPE_ORDER: tuple[SignalType, ...] = (
    SignalType.visual,
    SignalType.log,
    SignalType.metric,
    SignalType.event,
)

TRIGGER_TYPE_SCORES: Mapping[InfraEventType, tuple[float, str]] = MappingProxyType({
    InfraEventType.deploy: (0.4, "Recent deployment"),
    InfraEventType.config_change: (0.3, "Configuration change"),
    InfraEventType.scale: (0.2, "Scaling event"),
    InfraEventType.pod_crash: (0.3, "Pod instability"),
    InfraEventType.oom_kill: (0.3, "Pod instability"),
})

TRIGGER_SEVERITY_SCORES: Mapping[EventSeverity, tuple[float, str]] = MappingProxyType({
    EventSeverity.critical: (0.2, "Critical severity"),
    EventSeverity.warning: (0.1, "Warning severity"),
})

TRIGGER_PROXIMITY_WEIGHT = 0.2

# (cause type, effect type) -> (relationship, confidence)
TYPE_PAIR_RELATIONSHIPS: Mapping[tuple[SignalType, SignalType], tuple[str, float]] = MappingProxyType({
    (SignalType.event, SignalType.log): ("Event triggered error logs", 0.6),
    (SignalType.event, SignalType.metric): ("Event caused metric change", 0.5),
    (SignalType.log, SignalType.visual): ("Errors manifested in dashboard", 0.7),
})
SEQUENTIAL_RELATIONSHIP: tuple[str, float] = ("Sequential occurrence", 0.4)

K8S_METRIC_QUERIES: Mapping[str, str] = MappingProxyType({
    "cpu": 'rate(container_cpu_usage_seconds_total{{namespace="{namespace}", pod=~"{deployment}.*"}}[5m])',
    "memory": 'container_memory_usage_bytes{{namespace="{namespace}", pod=~"{deployment}.*"}}',
    "request_rate": 'rate(http_requests_total{{namespace="{namespace}", deployment="{deployment}"}}[5m])',
    "error_rate": 'rate(http_requests_total{{namespace="{namespace}", deployment="{deployment}", status_code=~"5.."}}[5m])',
    "latency_p99": 'histogram_quantile(0.99, rate(http_request_duration_seconds_bucket{{namespace="{namespace}", deployment="{deployment}"}}[5m]))',
})

K8S_METRIC_FALLBACK_NAMES: Mapping[str, str] = MappingProxyType({
    "cpu": "cpu_usage",
    "memory": "memory_usage",
    "request_rate": "request_rate",
    "error_rate": "error_rate",
    "latency_p99": "latency_p99",
})
