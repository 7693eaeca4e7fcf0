import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# ensure workspace root is on sys.path so our application packages can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from engine.constants import SIGNAL_TO_EVENT_SEVERITY  # noqa: E402
from engine.enums import InfraEventType, LogLevel, Severity  # noqa: E402
from schemas.correlation import EventSignal, LogSignal, MetricSignal, VisualObservation, VisualSignal  # noqa: E402
from schemas.ingestion import InfraEvent, Metric, NormalizedLog  # noqa: E402

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fixed_clock():
    """Clock pinned to ``NOW`` so age filters and fallback timestamps are deterministic."""
    return lambda: NOW


def at(offset_s):
    return NOW + timedelta(seconds=offset_s)


def log_signal(signal_id, offset_s, severity="high", description=None):
    sev = Severity(severity)
    text = description or f"log {signal_id}"
    return LogSignal(
        id=signal_id,
        timestamp=at(offset_s),
        source="api",
        severity=sev,
        description=text,
        data=NormalizedLog(
            id=signal_id,
            timestamp=at(offset_s),
            level=LogLevel.error if sev in (Severity.high, Severity.critical) else LogLevel.info,
            source="api",
            message=text,
        ),
    )


def metric_signal(signal_id, offset_s, severity="medium", description=None):
    return MetricSignal(
        id=signal_id,
        timestamp=at(offset_s),
        source="prometheus",
        severity=Severity(severity),
        description=description or f"metric {signal_id}",
        data=Metric(name="latency_p99", timestamp=at(offset_s), value=2.5),
    )


def event_signal(signal_id, offset_s, severity="medium", description=None):
    sev = Severity(severity)
    text = description or f"event {signal_id}"
    return EventSignal(
        id=signal_id,
        timestamp=at(offset_s),
        source="kubelet",
        severity=sev,
        description=text,
        data=InfraEvent(
            id=signal_id,
            type=InfraEventType.deploy,
            timestamp=at(offset_s),
            description=text,
            actor="ci",
            target="prod/api",
            severity=SIGNAL_TO_EVENT_SEVERITY[sev],
        ),
    )


def visual_signal(signal_id, offset_s, severity="medium", description=None):
    return VisualSignal(
        id=signal_id,
        timestamp=at(offset_s),
        source="dashboard",
        severity=Severity(severity),
        description=description or f"visual {signal_id}",
        data=VisualObservation(frame_id=signal_id, system_state="degraded"),
    )
