"""
Adapters from evidence records and ingestion outputs into the unified signal envelope.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from engine.constants import SEVERITY_VOCABULARY, SIGNAL_TO_EVENT_SEVERITY
from engine.enums import EventSeverity, EvidenceType, InfraEventType, LogLevel, Severity
from schemas.correlation import (
    EventSignal,
    LogSignal,
    MetricSignal,
    Signal,
    VisualAnomaly,
    VisualMetric,
    VisualObservation,
    VisualSignal,
)
from schemas.evidence import Evidence
from schemas.ingestion import InfraEvent, Metric, MetricAnomaly, NormalizedLog

log = logging.getLogger(__name__)

_LEVEL_SEVERITY = {
    LogLevel.fatal: Severity.critical,
    LogLevel.error: Severity.high,
    LogLevel.warn: Severity.medium,
    LogLevel.info: Severity.low,
    LogLevel.debug: Severity.low,
}

_EVENT_SEVERITY = {
    EventSeverity.critical: Severity.critical,
    EventSeverity.warning: Severity.medium,
    EventSeverity.info: Severity.low,
}


@dataclass
class SignalSet:
    visual: List[VisualSignal] = field(default_factory=list)
    logs: List[LogSignal] = field(default_factory=list)
    metrics: List[MetricSignal] = field(default_factory=list)
    events: List[EventSignal] = field(default_factory=list)

    def all(self) -> List[Signal]:
        return [*self.visual, *self.logs, *self.metrics, *self.events]

    def __len__(self) -> int:
        return len(self.visual) + len(self.logs) + len(self.metrics) + len(self.events)


def map_severity(value: Any) -> Severity:
    if value is None:
        return Severity.low
    return SEVERITY_VOCABULARY.get(str(value).strip().lower(), Severity.low)


def _pick(content: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if content.get(key) is not None:
            return content[key]
    return None


def _clamp(confidence: Optional[float]) -> Optional[float]:
    if confidence is None:
        return None
    return min(max(float(confidence), 0.0), 1.0)


def _visual(ev: Evidence, base: Dict[str, Any]) -> VisualSignal:
    content = ev.content
    raw_severity = content.get("severity")
    description = content.get("description")
    anomaly_type = _pick(content, "anomalyType", "anomaly_type")
    anomalies = []
    if anomaly_type:
        anomalies.append(VisualAnomaly(
            type=str(anomaly_type),
            description=str(description or ""),
            severity=str(raw_severity or "medium"),
        ))
    return VisualSignal(
        **base,
        severity=map_severity(raw_severity),
        description=str(description or "Visual observation"),
        data=VisualObservation(
            frame_id=ev.id,
            system_state="critical" if content.get("healthy") is False else "healthy",
            anomalies=anomalies,
            metrics=[VisualMetric(**m) for m in content.get("metrics") or []],
        ),
    )


def _log(ev: Evidence, base: Dict[str, Any]) -> LogSignal:
    content = ev.content
    severity = map_severity(content.get("severity"))
    description = content.get("description")
    return LogSignal(
        **base,
        severity=severity,
        description=str(description or content.get("pattern") or "Log entry"),
        data=NormalizedLog(
            id=ev.id,
            timestamp=ev.timestamp,
            level=LogLevel.error if severity in (Severity.high, Severity.critical) else LogLevel.warn,
            source=ev.source,
            message=str(description or ""),
            metadata=dict(ev.metadata or {}),
            raw=json.dumps(content, default=str),
        ),
    )


def _metric(ev: Evidence, base: Dict[str, Any]) -> MetricSignal:
    content = ev.content
    name = str(content.get("name") or "unknown")
    value = float(content.get("value") or 0.0)
    unit = str(content.get("unit") or "")
    return MetricSignal(
        **base,
        severity=Severity.medium,
        description=str(content.get("description") or f"{name}: {value:g}{unit}"),
        data=Metric(name=name, timestamp=ev.timestamp, value=value, labels={}),
    )


def _event(ev: Evidence, base: Dict[str, Any]) -> EventSignal:
    content = ev.content
    severity = map_severity(content.get("severity"))
    try:
        event_type = InfraEventType(content.get("type"))
    except ValueError:
        event_type = InfraEventType.k8s_event
    description = content.get("description")
    return EventSignal(
        **base,
        severity=severity,
        description=str(description or "K8s event"),
        data=InfraEvent(
            id=ev.id,
            type=event_type,
            timestamp=ev.timestamp,
            description=str(description or ""),
            actor=ev.source,
            target=str(content.get("target") or ""),
            metadata=dict(ev.metadata or {}),
            severity=SIGNAL_TO_EVENT_SEVERITY[severity],
        ),
    )


_ADAPTERS = {
    EvidenceType.video_frame: ("visual", _visual),
    EvidenceType.log: ("logs", _log),
    EvidenceType.metric: ("metrics", _metric),
    EvidenceType.k8s_event: ("events", _event),
}


def evidence_to_signals(evidence: Iterable[Evidence]) -> SignalSet:
    signals = SignalSet()
    for ev in evidence:
        adapter = _ADAPTERS.get(ev.type)
        if adapter is None:
            log.debug("evidence %s of type %s has no signal mapping", ev.id, ev.type.value)
            continue
        bucket, build = adapter
        base = {
            "id": ev.id,
            "timestamp": ev.timestamp,
            "source": ev.source,
            "confidence": _clamp(ev.confidence),
        }
        try:
            getattr(signals, bucket).append(build(ev, base))
        except (TypeError, ValueError) as exc:
            log.warning("skipping malformed %s evidence %s: %s", ev.type.value, ev.id, exc)
    return signals


def log_signal(entry: NormalizedLog) -> LogSignal:
    return LogSignal(
        id=entry.id,
        timestamp=entry.timestamp,
        source=entry.source,
        severity=_LEVEL_SEVERITY[entry.level],
        description=entry.message[:200] or entry.raw[:200] or "Log entry",
        data=entry,
    )


def anomaly_signal(anomaly: MetricAnomaly, source: str = "metrics") -> MetricSignal:
    labels = ",".join(f"{k}={v}" for k, v in sorted(anomaly.labels.items()))
    return MetricSignal(
        id=f"anomaly-{anomaly.metric}{{{labels}}}-{int(anomaly.timestamp.timestamp() * 1000)}",
        timestamp=anomaly.timestamp,
        source=source,
        severity=anomaly.severity,
        description=f"{anomaly.metric} at {anomaly.value:g} ({anomaly.deviation:+.1f} stddev)",
        data=anomaly,
    )


def event_signal(event: InfraEvent) -> EventSignal:
    return EventSignal(
        id=event.id,
        timestamp=event.timestamp,
        source=event.actor,
        severity=_EVENT_SEVERITY[event.severity],
        description=event.description or f"{event.type.value} {event.target}",
        data=event,
    )
