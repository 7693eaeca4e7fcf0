"""
Test cases for the engine enums, covering severity ordering and scores, log level error flags and evidence kinds.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.enums import CorrelationType, EvidenceType, InfraEventType, LogLevel, Severity, SignalType


def test_severity_weight_and_score():
    assert Severity.low.weight() < Severity.medium.weight() < Severity.high.weight() < Severity.critical.weight()
    assert [s.score() for s in Severity] == [0.25, 0.5, 0.75, 1.0]


@pytest.mark.parametrize("severity,expected", [
    (Severity.low, Severity.medium),
    (Severity.medium, Severity.high),
    (Severity.high, Severity.critical),
    (Severity.critical, Severity.critical),
])
def test_severity_boosted(severity, expected):
    assert severity.boosted() == expected


def test_log_level_is_error():
    assert [level for level in LogLevel if level.is_error] == [LogLevel.error, LogLevel.fatal]


def test_string_values():
    assert SignalType("event") is SignalType.event
    assert CorrelationType.symptomatic.value == "symptomatic"
    assert InfraEventType.oom_kill.value == "oom_kill"
    assert EvidenceType.video_frame.value == "video_frame"
    with pytest.raises(ValueError):
        SignalType("trace")
