"""
Enumerations for severities, log levels, signal kinds, infrastructure event types and correlation types.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from enum import Enum

from config import SEVERITY_WEIGHTS


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self.value]

    def score(self) -> float:
        from engine.constants import SEVERITY_SCORES

        return SEVERITY_SCORES[self]

    def boosted(self) -> Severity:
        order = list(Severity)
        return order[min(order.index(self) + 1, len(order) - 1)]


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warn = "warn"
    error = "error"
    fatal = "fatal"

    @property
    def is_error(self) -> bool:
        return self in (LogLevel.error, LogLevel.fatal)


class LogFormat(str, Enum):
    json = "json"
    kubernetes = "kubernetes"
    plaintext = "plaintext"
    auto = "auto"


class SignalType(str, Enum):
    visual = "visual"
    log = "log"
    metric = "metric"
    event = "event"


class InfraEventType(str, Enum):
    deploy = "deploy"
    scale = "scale"
    config_change = "config_change"
    restart = "restart"
    rollback = "rollback"
    alert = "alert"
    git_push = "git_push"
    k8s_event = "k8s_event"
    pod_crash = "pod_crash"
    oom_kill = "oom_kill"


class EventSeverity(str, Enum):
    info = "info"
    warning = "warning"
    critical = "critical"


class CorrelationType(str, Enum):
    causal = "causal"
    temporal = "temporal"
    symptomatic = "symptomatic"
    sequential = "sequential"


class Trend(str, Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"
    volatile = "volatile"


class Direction(str, Enum):
    up = "up"
    down = "down"
    stable = "stable"


class EvidenceType(str, Enum):
    video_frame = "video_frame"
    log = "log"
    metric = "metric"
    k8s_event = "k8s_event"
    user_report = "user_report"
