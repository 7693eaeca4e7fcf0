"""
Test cases for the event stream: git and deploy ingestion, Kubernetes event parsing and conversion, timelines and trigger scoring.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import json
from datetime import timedelta

import pytest

from engine.enums import EventSeverity, InfraEventType
from engine.events import EventStream, convert_k8s_events, parse_kubernetes_events
from schemas.ingestion import Deploy, GitCommit, InfraEvent

from conftest import NOW


def make_event(offset_s, type_=InfraEventType.deploy, severity=EventSeverity.info, event_id=None):
    return InfraEvent(
        id=event_id or f"evt-{type_.value}-{offset_s}",
        type=type_,
        timestamp=NOW + timedelta(seconds=offset_s),
        description=f"{type_.value} at {offset_s}",
        actor="ci",
        target="prod/api",
        metadata={"revision": 7, "image": "api:1.2.3", "namespace": "prod", "deployment": "api"},
        severity=severity,
    )


def k8s_object(uid, reason, type_="Warning", name="api-0", last="2024-01-15T11:55:00Z"):
    return {
        "metadata": {"uid": uid, "namespace": "prod"},
        "type": type_,
        "reason": reason,
        "message": f"{reason} on {name}",
        "involvedObject": {"kind": "Pod", "name": name},
        "firstTimestamp": "2024-01-15T11:50:00Z",
        "lastTimestamp": last,
        "count": 3,
        "source": {"component": "kubelet", "host": "node-1"},
    }


@pytest.fixture
def stream(fixed_clock):
    return EventStream(clock=fixed_clock)


def test_ingest_git_events(stream):
    commits = [GitCommit(sha="a1b2c3d4e5f6", message="x" * 150, author="dev", timestamp=NOW, files=["app.py"])]
    deploys = [
        Deploy(id="dep-1", revision=4, image="api:4", timestamp=NOW, triggered_by="ci", status="failed", deployment="api"),
        Deploy(id="dep-2", timestamp=NOW, triggered_by="ci", deployment="web"),
    ]
    events = stream.ingest_git_events(commits, deploys)
    commit, failed, ok = events
    assert commit.type == InfraEventType.git_push
    assert commit.severity == EventSeverity.info
    assert commit.id == "commit-a1b2c3d4e5f6"
    assert commit.target == "git:a1b2c3d"
    assert commit.description == "Git commit: " + "x" * 100
    assert failed.type == InfraEventType.deploy
    assert failed.severity == EventSeverity.critical
    assert failed.target == "default/api"
    assert ok.severity == EventSeverity.info


def test_parse_json_lines(stream):
    raw = "\n".join(json.dumps(k8s_object(f"u{i}", "BackOff")) for i in range(3))
    events = stream.parse_kubernetes_events(raw)
    assert [e.uid for e in events] == ["u0", "u1", "u2"]
    first = events[0]
    assert first.type == "Warning"
    assert first.involved_object.namespace == "prod"
    assert first.last_timestamp == NOW - timedelta(minutes=5)
    assert first.first_timestamp == NOW - timedelta(minutes=10)
    assert first.count == 3
    assert first.source.component == "kubelet"
    assert first.source.host == "node-1"


def test_parse_events_document_round_trip(stream):
    reasons = ["OOMKilled", "BackOff", "ScaledUp", "Pulled", "SomethingNew", "Unhealthy"]
    doc = {"kind": "EventList", "items": [k8s_object(f"u{i}", r) for i, r in enumerate(reasons)]}
    events = stream.convert_k8s_events(stream.parse_kubernetes_events(json.dumps(doc, indent=2)))
    assert len(events) == len(reasons)
    assert all(isinstance(e.type, InfraEventType) for e in events)
    by_reason = {e.metadata["k8s_reason"]: e for e in events}
    assert by_reason["OOMKilled"].type == InfraEventType.oom_kill
    assert by_reason["BackOff"].type == InfraEventType.pod_crash
    assert by_reason["ScaledUp"].type == InfraEventType.scale
    assert by_reason["SomethingNew"].type == InfraEventType.k8s_event
    assert by_reason["Unhealthy"].severity == EventSeverity.critical
    assert by_reason["SomethingNew"].severity == EventSeverity.warning


def test_parse_events_accepts_top_level_array_and_newer_api(stream):
    items = [{
        "metadata": {"uid": "n1"},
        "type": "Normal",
        "reason": "Started",
        "note": "Started container app",
        "regarding": {"kind": "Pod", "name": "api-1", "namespace": "staging"},
        "eventTime": "2024-01-15T11:58:00.000000Z",
        "reportingComponent": "kubelet",
    }]
    events = parse_kubernetes_events(json.dumps(items), NOW)
    assert len(events) == 1
    event = events[0]
    assert event.message == "Started container app"
    assert event.involved_object.namespace == "staging"
    assert event.last_timestamp == NOW - timedelta(minutes=2)
    assert event.source.component == "kubelet"


def test_parse_tabular_output(stream):
    raw = "\n".join([
        "LAST SEEN   TYPE      REASON      OBJECT             MESSAGE",
        "5m          Warning   BackOff     pod/api-7d9f       Back-off restarting failed container",
        "30s         Normal    Scheduled   pod/api-7d9f       Successfully assigned default/api-7d9f",
        "Warning OOMKilled api-0 container exceeded memory limit",
        "Warning BackOff",
        "nothing to see here",
    ])
    events = stream.parse_kubernetes_events(raw)
    assert len(events) == 3
    backoff, scheduled, oom = events
    assert backoff.reason == "BackOff"
    assert backoff.involved_object.kind == "pod"
    assert backoff.involved_object.name == "api-7d9f"
    assert backoff.message == "Back-off restarting failed container"
    assert backoff.last_timestamp == NOW - timedelta(minutes=5)
    assert scheduled.last_timestamp == NOW - timedelta(seconds=30)
    assert oom.involved_object.kind == "Pod"
    assert oom.involved_object.name == "api-0"
    assert oom.last_timestamp == NOW


def test_tabular_uids_are_stable(stream):
    raw = "Warning BackOff api-0 crash loop"
    assert stream.parse_kubernetes_events(raw)[0].uid == stream.parse_kubernetes_events(raw)[0].uid


def test_convert_severity_rules():
    events = parse_kubernetes_events("\n".join([
        json.dumps(k8s_object("a", "FailedMount")),
        json.dumps(k8s_object("b", "Failed")),
        json.dumps(k8s_object("c", "Killing", type_="Normal")),
    ]), NOW)
    converted = convert_k8s_events(events)
    assert [e.severity for e in converted] == [EventSeverity.warning, EventSeverity.critical, EventSeverity.info]
    assert converted[2].type == InfraEventType.restart
    assert converted[0].target == "Pod/api-0"
    assert converted[0].actor == "kubelet"
    assert converted[0].metadata["namespace"] == "prod"


def test_build_event_timeline(stream):
    events = [
        make_event(-600),
        make_event(-300, InfraEventType.pod_crash, EventSeverity.critical),
        make_event(-120, InfraEventType.k8s_event, EventSeverity.warning),
        make_event(-7200),
        make_event(60),
    ]
    timeline = stream.build_event_timeline(events, NOW - timedelta(hours=3), NOW)
    assert [e.id for e in timeline.events] == ["evt-deploy--600", "evt-pod_crash--300", "evt-k8s_event--120"]
    assert timeline.summary.total_events == 3
    assert timeline.summary.deploy_count == 1
    assert timeline.summary.critical_count == 1
    assert timeline.summary.warning_count == 1
    deploy = timeline.deployments[0]
    assert deploy.revision == 7
    assert deploy.namespace == "prod"
    assert deploy.deployment == "api"


def test_find_preceding_deployment(stream):
    events = [
        make_event(-600),
        make_event(-120),
        make_event(0),
        make_event(60),
        make_event(-30, InfraEventType.config_change),
    ]
    deploy = stream.find_preceding_deployment(events, NOW)
    assert deploy.id == "evt-deploy--120"
    assert stream.find_preceding_deployment([make_event(0)], NOW) is None


def test_find_correlated_events_window(stream):
    events = [make_event(-400), make_event(-299), make_event(60), make_event(76), make_event(-10)]
    correlated = stream.find_correlated_events(events, NOW, window_ms=300_000)
    assert [e.id for e in correlated] == ["evt-deploy--299", "evt-deploy--10", "evt-deploy-60"]


def test_trigger_proximity_monotonic(stream):
    near = make_event(-1, event_id="near")
    far = make_event(-300, event_id="far")
    triggers = stream.find_potential_triggers([far, near], NOW)
    assert [t.event.id for t in triggers] == ["near", "far"]
    assert triggers[0].trigger_score > triggers[1].trigger_score
    assert "Very close to incident time" in triggers[0].reasoning
    assert triggers[1].reasoning == "Recent deployment"


def test_trigger_scoring_and_floor(stream):
    events = [
        make_event(-240, InfraEventType.k8s_event, EventSeverity.info, event_id="noise"),
        make_event(0, InfraEventType.k8s_event, EventSeverity.warning, event_id="warning"),
        make_event(-5, InfraEventType.oom_kill, EventSeverity.critical, event_id="oom"),
    ]
    triggers = stream.find_potential_triggers(events, NOW)
    assert [t.event.id for t in triggers] == ["oom", "warning"]
    assert triggers[0].trigger_score == pytest.approx(0.3 + 0.2 + 0.2 * (1 - 5_000 / 300_000))
    assert triggers[1].trigger_score == pytest.approx(0.3)
    assert all(0.0 <= t.trigger_score <= 1.0 for t in triggers)


def test_naive_bounds_and_incident_time_read_as_utc(stream):
    naive_now = NOW.replace(tzinfo=None)
    events = [make_event(-600), make_event(-120, event_id="recent"), make_event(60)]

    timeline = stream.build_event_timeline(events, naive_now - timedelta(hours=1), naive_now)
    assert [e.id for e in timeline.events] == ["evt-deploy--600", "recent"]

    assert stream.find_preceding_deployment(events, naive_now).id == "recent"
    assert [e.id for e in stream.find_correlated_events(events, naive_now, window_ms=300_000)] == ["recent", "evt-deploy-60"]
    assert {t.event.id for t in stream.find_potential_triggers(events, naive_now)} == {"recent", "evt-deploy-60"}
