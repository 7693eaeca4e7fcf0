"""
Kubernetes event parsing for JSON and tabular ``kubectl get events`` output, and conversion to infrastructure events.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from engine.constants import K8S_CRITICAL_REASONS, K8S_REASON_EVENT_TYPES
from engine.enums import EventSeverity, InfraEventType
from engine.timestamps import parse_timestamp
from schemas.ingestion import EventSource, InfraEvent, InvolvedObject, K8sEvent

log = logging.getLogger(__name__)

_EVENT_TYPES = ("Normal", "Warning")
_AGE_RE = re.compile(r"^(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$")


def _stable_uid(text: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, text))


def _parse_age(token: str) -> Optional[timedelta]:
    match = _AGE_RE.match(token)
    if not match or not any(match.groups()):
        return None
    days, hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)


def _from_object(obj: Dict[str, Any], now: datetime, fallback_uid: str) -> K8sEvent:
    meta = obj.get("metadata") or {}
    involved = obj.get("involvedObject") or obj.get("regarding") or {}
    source = obj.get("source") or {}

    last = (
        parse_timestamp(obj.get("lastTimestamp"))
        or parse_timestamp(obj.get("eventTime"))
        or parse_timestamp(obj.get("firstTimestamp"))
        or now
    )
    first = parse_timestamp(obj.get("firstTimestamp")) or parse_timestamp(obj.get("eventTime")) or last
    event_type = obj.get("type") if obj.get("type") in _EVENT_TYPES else "Normal"

    return K8sEvent(
        uid=str(meta.get("uid") or fallback_uid),
        type=event_type,
        reason=str(obj.get("reason") or ""),
        message=str(obj.get("message") or obj.get("note") or ""),
        involved_object=InvolvedObject(
            kind=str(involved.get("kind") or "Unknown"),
            name=str(involved.get("name") or "unknown"),
            namespace=str(involved.get("namespace") or meta.get("namespace") or "default"),
        ),
        first_timestamp=first,
        last_timestamp=last,
        count=int(obj.get("count") or 1),
        source=EventSource(
            component=str(source.get("component") or obj.get("reportingComponent") or "unknown"),
            host=source.get("host"),
        ),
    )


def _try_object(obj: Any, now: datetime, fallback_uid: str) -> Optional[K8sEvent]:
    if not isinstance(obj, dict):
        return None
    try:
        return _from_object(obj, now, fallback_uid)
    except (AttributeError, TypeError, ValueError) as exc:
        log.debug("skipping malformed kubernetes event object: %s", exc)
        return None


def _from_row(line: str, now: datetime) -> Optional[K8sEvent]:
    parts = line.split()
    if len(parts) < 4:
        return None
    type_index = next((i for i, part in enumerate(parts) if part in _EVENT_TYPES), -1)
    if type_index < 0:
        return None

    reason = parts[type_index + 1] if type_index + 1 < len(parts) else "Unknown"
    object_part = parts[type_index + 2] if type_index + 2 < len(parts) else ""
    kind, name = "Pod", object_part
    if "/" in object_part:
        kind, name = object_part.split("/", 1)

    # leading columns are LAST SEEN (and FIRST SEEN / COUNT with -o wide)
    age = _parse_age(parts[0]) if type_index > 0 else None
    seen = now - age if age is not None else now

    return K8sEvent(
        uid=_stable_uid(line),
        type=parts[type_index],
        reason=reason,
        message=" ".join(parts[type_index + 3:]),
        involved_object=InvolvedObject(kind=kind, name=name, namespace="default"),
        first_timestamp=seen,
        last_timestamp=seen,
        count=1,
        source=EventSource(component="kubectl"),
    )


def _document_items(text: str) -> Optional[List[Any]]:
    stripped = text.strip()
    if not stripped.startswith(("{", "[")):
        return None
    try:
        doc = json.loads(stripped)
    except ValueError:
        return None
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict) and isinstance(doc.get("items"), list):
        return doc["items"]
    return None


def parse_kubernetes_events(output: str, now: datetime) -> List[K8sEvent]:
    text = output or ""
    items = _document_items(text)
    if items is not None:
        events = []
        for item in items:
            event = _try_object(item, now, _stable_uid(json.dumps(item, sort_keys=True, default=str)))
            if event is not None:
                events.append(event)
        log.debug("parsed %d kubernetes events from JSON document", len(events))
        return events

    lines = text.splitlines()
    start = 1 if lines and "LAST SEEN" in lines[0] else 0
    events: List[K8sEvent] = []
    for raw in lines[start:]:
        line = raw.strip()
        if not line:
            continue
        event: Optional[K8sEvent] = None
        if line.startswith("{"):
            try:
                obj = json.loads(line)
            except ValueError:
                obj = None
            event = _try_object(obj, now, _stable_uid(line))
        if event is None:
            event = _from_row(line, now)
        if event is None:
            log.debug("skipping unparsable event line: %.100s", line)
            continue
        events.append(event)

    log.debug("parsed %d kubernetes events from %d lines", len(events), len(lines))
    return events


def event_type_for(reason: str) -> InfraEventType:
    return K8S_REASON_EVENT_TYPES.get(reason, InfraEventType.k8s_event)


def severity_for(event: K8sEvent) -> EventSeverity:
    if event.type != "Warning":
        return EventSeverity.info
    if event.reason in K8S_CRITICAL_REASONS:
        return EventSeverity.critical
    return EventSeverity.warning


def convert_k8s_events(events: Iterable[K8sEvent]) -> List[InfraEvent]:
    return [
        InfraEvent(
            id=event.uid,
            type=event_type_for(event.reason),
            timestamp=event.last_timestamp,
            description=event.message,
            actor=event.source.component,
            target=f"{event.involved_object.kind}/{event.involved_object.name}",
            metadata={
                "k8s_reason": event.reason,
                "k8s_type": event.type,
                "namespace": event.involved_object.namespace,
                "count": event.count,
                "first_timestamp": event.first_timestamp.isoformat(),
            },
            severity=severity_for(event),
        )
        for event in events
    ]
