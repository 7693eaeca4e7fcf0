"""
Event stream: source-control and deploy ingestion, Kubernetes events, bounded timelines and trigger scoring.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from config import settings
from engine.constants import TRIGGER_PROXIMITY_WEIGHT, TRIGGER_SEVERITY_SCORES, TRIGGER_TYPE_SCORES
from engine.enums import EventSeverity, InfraEventType
from engine.events.kubernetes import convert_k8s_events, parse_kubernetes_events
from engine.timestamps import Clock, elapsed_ms, ensure_utc, utcnow
from schemas.ingestion import (
    Deploy,
    EventTimeline,
    GitCommit,
    InfraEvent,
    K8sEvent,
    TimelineSummary,
    TriggerCandidate,
)

log = logging.getLogger(__name__)

_DEPLOY_STATUSES = ("pending", "in_progress", "completed", "failed")


def deploy_from_event(event: InfraEvent) -> Deploy:
    meta = event.metadata
    status = meta.get("status")
    target_parts = event.target.split("/")
    try:
        revision = int(meta.get("revision") or 0)
    except (TypeError, ValueError):
        revision = 0
    return Deploy(
        id=event.id,
        revision=revision,
        image=str(meta.get("image") or ""),
        timestamp=event.timestamp,
        triggered_by=event.actor,
        status=status if status in _DEPLOY_STATUSES else "completed",
        namespace=str(meta.get("namespace") or "default"),
        deployment=str(meta.get("deployment") or (target_parts[1] if len(target_parts) > 1 else "unknown")),
    )


class EventStream:

    def __init__(
        self,
        max_event_age_ms: Optional[int] = None,
        correlation_window_ms: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.max_event_age_ms = settings.event_max_age_ms if max_event_age_ms is None else max_event_age_ms
        self.correlation_window_ms = (
            settings.event_correlation_window_ms if correlation_window_ms is None else correlation_window_ms
        )
        self._clock = clock or utcnow

    def ingest_git_events(self, commits: List[GitCommit], deploys: List[Deploy]) -> List[InfraEvent]:
        events: List[InfraEvent] = []
        for commit in commits:
            events.append(InfraEvent(
                id=f"commit-{commit.sha}",
                type=InfraEventType.git_push,
                timestamp=commit.timestamp,
                description=f"Git commit: {commit.message[:100]}",
                actor=commit.author,
                target=f"git:{commit.sha[:7]}",
                metadata={"sha": commit.sha, "message": commit.message, "files": list(commit.files)},
                severity=EventSeverity.info,
            ))

        for deploy in deploys:
            events.append(InfraEvent(
                id=deploy.id,
                type=InfraEventType.deploy,
                timestamp=deploy.timestamp,
                description=f"Deployment {deploy.deployment} revision {deploy.revision}: {deploy.status}",
                actor=deploy.triggered_by,
                target=f"{deploy.namespace}/{deploy.deployment}",
                metadata={
                    "revision": deploy.revision,
                    "image": deploy.image,
                    "status": deploy.status,
                    "namespace": deploy.namespace,
                    "deployment": deploy.deployment,
                },
                severity=EventSeverity.critical if deploy.status == "failed" else EventSeverity.info,
            ))

        log.debug("ingested %d commits and %d deploys", len(commits), len(deploys))
        return events

    def parse_kubernetes_events(self, output: str) -> List[K8sEvent]:
        return parse_kubernetes_events(output, self._clock())

    def convert_k8s_events(self, events: List[K8sEvent]) -> List[InfraEvent]:
        return convert_k8s_events(events)

    def build_event_timeline(self, events: List[InfraEvent], start: datetime, end: datetime) -> EventTimeline:
        start, end = ensure_utc(start), ensure_utc(end)
        oldest = self._clock() - timedelta(milliseconds=self.max_event_age_ms)
        kept = sorted(
            (e for e in events if start <= e.timestamp <= end and e.timestamp >= oldest),
            key=lambda e: e.timestamp,
        )
        deployments = [deploy_from_event(e) for e in kept if e.type == InfraEventType.deploy]

        return EventTimeline(
            events=kept,
            deployments=deployments,
            start_time=start,
            end_time=end,
            summary=TimelineSummary(
                total_events=len(kept),
                deploy_count=len(deployments),
                warning_count=sum(1 for e in kept if e.severity == EventSeverity.warning),
                critical_count=sum(1 for e in kept if e.severity == EventSeverity.critical),
            ),
        )

    def find_preceding_deployment(self, events: List[InfraEvent], incident_time: datetime) -> Optional[Deploy]:
        incident_time = ensure_utc(incident_time)
        candidates = [e for e in events if e.type == InfraEventType.deploy and e.timestamp < incident_time]
        if not candidates:
            return None
        return deploy_from_event(max(candidates, key=lambda e: e.timestamp))

    def find_correlated_events(
        self,
        events: List[InfraEvent],
        incident_time: datetime,
        window_ms: Optional[int] = None,
    ) -> List[InfraEvent]:
        window = self.correlation_window_ms if window_ms is None else window_ms
        incident_time = ensure_utc(incident_time)
        lower = incident_time - timedelta(milliseconds=window)
        # TODO: the window/4 post-incident tolerance is untuned; revisit against labelled incident data
        upper = incident_time + timedelta(milliseconds=window / 4)
        return sorted((e for e in events if lower <= e.timestamp <= upper), key=lambda e: e.timestamp)

    def find_potential_triggers(self, events: List[InfraEvent], incident_time: datetime) -> List[TriggerCandidate]:
        incident_time = ensure_utc(incident_time)
        min_score = settings.event_trigger_min_score
        window = self.correlation_window_ms
        candidates: List[TriggerCandidate] = []

        for event in self.find_correlated_events(events, incident_time):
            score = 0.0
            reasons: List[str] = []

            type_score = TRIGGER_TYPE_SCORES.get(event.type)
            if type_score:
                score += type_score[0]
                reasons.append(type_score[1])

            severity_score = TRIGGER_SEVERITY_SCORES.get(event.severity)
            if severity_score:
                score += severity_score[0]
                reasons.append(severity_score[1])

            delta = abs(elapsed_ms(incident_time, event.timestamp))
            proximity = max(0.0, TRIGGER_PROXIMITY_WEIGHT * (1 - delta / window)) if window > 0 else 0.0
            score += proximity
            if proximity > TRIGGER_PROXIMITY_WEIGHT / 2:
                reasons.append("Very close to incident time")

            if score < min_score:
                continue
            candidates.append(TriggerCandidate(
                event=event,
                trigger_score=min(score, 1.0),
                reasoning="; ".join(reasons),
            ))

        candidates.sort(key=lambda c: c.trigger_score, reverse=True)
        log.debug("scored %d trigger candidates for incident at %s", len(candidates), incident_time.isoformat())
        return candidates
