"""
Log parser turning raw log text into normalized records, error groups, time windows and error-rate spikes.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Pattern, Union

import numpy as np

from config import settings
from engine.constants import LEVEL_PRECEDENCE
from engine.enums import LogFormat, LogLevel
from engine.logs.formats import (
    LINE_PARSERS,
    UNKNOWN_ERROR,
    detect_format,
    is_stack_line,
    is_traceback_tail,
    level_counts,
    make_log_id,
)
from engine.timestamps import Clock, elapsed_ms, utcnow
from schemas.ingestion import (
    ErrorLog,
    ErrorSpike,
    LogGroup,
    LogParserResult,
    LogSummary,
    NormalizedLog,
    TimeRange,
)

log = logging.getLogger(__name__)

# levels eligible for a group's dominant level, ties resolved in this order
_GROUP_DOMINANT_CANDIDATES = (LogLevel.fatal, LogLevel.error, LogLevel.warn, LogLevel.debug)


class LogParser:
    """Normalizes JSON, Kubernetes-prefixed and plaintext logs.

    Every threshold falls back to ``config.settings`` when not given. ``clock``
    supplies "now" for age filtering and for lines that carry no timestamp.
    """

    def __init__(
        self,
        max_log_age_ms: Optional[int] = None,
        spike_threshold: Optional[float] = None,
        time_window_ms: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.max_log_age_ms = settings.log_max_age_ms if max_log_age_ms is None else max_log_age_ms
        self.spike_threshold = settings.log_spike_threshold if spike_threshold is None else spike_threshold
        self.time_window_ms = settings.log_time_window_ms if time_window_ms is None else time_window_ms
        self._clock = clock or utcnow

    def detect_format(self, sample: str) -> LogFormat:
        return detect_format(sample)

    def parse(
        self,
        raw: str,
        format: Optional[Union[LogFormat, str]] = None,
        source: str = "unknown",
    ) -> List[NormalizedLog]:
        fmt = LogFormat(format) if format else LogFormat.auto
        if fmt == LogFormat.auto:
            fmt = self.detect_format(raw)
        parse_line = LINE_PARSERS[fmt]

        now = self._clock()
        lines = [line for line in (raw or "").splitlines() if line.strip()]
        log.debug("parsing %d lines as %s from %s", len(lines), fmt.value, source)

        logs: List[NormalizedLog] = []
        anchor: Optional[NormalizedLog] = None
        stack: List[str] = []
        dropped = 0

        def _flush() -> None:
            if not stack:
                return
            if anchor is not None:
                anchor.stack_trace = "\n".join(stack)
            else:
                log.debug("discarding %d stack lines with no preceding error log", len(stack))

        for index, line in enumerate(lines):
            if self._continues_stack(line, stack):
                stack.append(line)
                continue

            _flush()
            stack = []
            anchor = None

            parsed = parse_line(line, source, make_log_id(source, index, line), now)
            if parsed is None:
                continue
            if elapsed_ms(parsed.timestamp, now) > self.max_log_age_ms:
                dropped += 1
                continue

            logs.append(parsed)
            if parsed.level.is_error:
                anchor = parsed

        _flush()
        log.info("parsed %d logs from %s (format=%s, dropped_stale=%d)", len(logs), source, fmt.value, dropped)
        return logs

    @staticmethod
    def _continues_stack(line: str, stack: List[str]) -> bool:
        if is_stack_line(line):
            return True
        if not stack:
            return False
        # python tracebacks carry indented source lines and end with the exception line
        if line[:1].isspace():
            return True
        return "Traceback" in stack[0] and is_traceback_tail(line) and not is_traceback_tail(stack[-1])

    def parse_kubernetes_logs(self, kubectl_output: str, pod_name: str) -> List[NormalizedLog]:
        logs = self.parse(kubectl_output, LogFormat.auto, f"kubectl:{pod_name}")
        for entry in logs:
            entry.pod_name = pod_name
            entry.metadata["pod_name"] = pod_name
        return logs

    def extract_errors(self, logs: List[NormalizedLog]) -> List[ErrorLog]:
        grouped: Dict[str, List[NormalizedLog]] = OrderedDict()
        for entry in logs:
            if entry.level.is_error:
                grouped.setdefault(entry.error_type or UNKNOWN_ERROR, []).append(entry)

        errors: List[ErrorLog] = []
        for error_type, members in grouped.items():
            first = members[0]
            pods = list(dict.fromkeys(m.pod_name for m in members if m.pod_name))
            timestamps = [m.timestamp for m in members]
            errors.append(ErrorLog(
                **first.model_dump(exclude={"error_type"}),
                error_type=error_type,
                occurrences=len(members),
                first_seen=min(timestamps),
                last_seen=max(timestamps),
                affected_pods=pods,
            ))

        errors.sort(key=lambda e: e.occurrences, reverse=True)
        return errors

    def group_by_time_window(
        self,
        logs: List[NormalizedLog],
        window_ms: Optional[int] = None,
    ) -> List[LogGroup]:
        window = self.time_window_ms if window_ms is None else window_ms
        if not logs:
            return []

        ordered = sorted(logs, key=lambda entry: entry.timestamp)
        groups: List[LogGroup] = []
        current: List[NormalizedLog] = []
        group_start = ordered[0].timestamp

        for entry in ordered:
            if elapsed_ms(group_start, entry.timestamp) > window:
                if current:
                    groups.append(_make_group(current))
                current = [entry]
                group_start = entry.timestamp
            else:
                current.append(entry)

        if current:
            groups.append(_make_group(current))
        return groups

    def detect_error_spikes(
        self,
        logs: List[NormalizedLog],
        threshold: Optional[float] = None,
    ) -> List[ErrorSpike]:
        multiplier = self.spike_threshold if threshold is None else threshold
        window_ms = self.time_window_ms
        groups = self.group_by_time_window(logs, window_ms)
        if len(groups) < 2:
            return []

        window_seconds = window_ms / 1000.0
        rates = [g.error_count / window_seconds for g in groups]
        leading = rates[: max(1, len(rates) // 2)]
        baseline = float(np.mean(leading))
        if baseline <= 0:
            log.debug("no error baseline across %d leading windows; skipping spike detection", len(leading))
            return []

        spikes: List[ErrorSpike] = []
        for group, rate in zip(groups, rates):
            if rate < baseline * multiplier:
                continue
            error_logs = [entry for entry in group.logs if entry.level.is_error]
            types = list(dict.fromkeys(entry.error_type for entry in error_logs if entry.error_type))
            spikes.append(ErrorSpike(
                start=group.start_time,
                end=group.end_time,
                count=group.error_count,
                baseline_rate=baseline,
                spike_rate=rate,
                types=types,
                samples=error_logs[: settings.log_spike_sample_limit],
            ))

        if spikes:
            log.info("detected %d error spikes (baseline=%.4f/s, threshold=%.2fx)", len(spikes), baseline, multiplier)
        return spikes

    def find_matching(
        self,
        logs: List[NormalizedLog],
        pattern: Union[str, Pattern[str]],
    ) -> List[NormalizedLog]:
        if isinstance(pattern, str):
            try:
                regex = re.compile(pattern, re.I)
            except re.error:
                regex = re.compile(re.escape(pattern), re.I)
        else:
            regex = pattern
        return [entry for entry in logs if regex.search(entry.message) or regex.search(entry.raw)]

    def analyze(self, raw: str, source: str = "unknown") -> LogParserResult:
        try:
            return self._analyze(raw, source)
        except Exception:
            log.exception("log analysis failed for source %s", source)
            return _empty_result(self._clock())

    def _analyze(self, raw: str, source: str) -> LogParserResult:
        logs = self.parse(raw, LogFormat.auto, source)
        errors = self.extract_errors(logs)
        groups = self.group_by_time_window(logs)
        spikes = self.detect_error_spikes(logs)

        counts = level_counts(logs)
        dominant = next(
            (level for level in LEVEL_PRECEDENCE if counts[level] > 0),
            LogLevel.info,
        )
        now = self._clock()
        timestamps = [entry.timestamp for entry in logs] + [now]

        return LogParserResult(
            logs=logs,
            errors=errors,
            groups=groups,
            spikes=spikes,
            summary=LogSummary(
                total_logs=len(logs),
                error_count=counts[LogLevel.error] + counts[LogLevel.fatal],
                warn_count=counts[LogLevel.warn],
                time_range=TimeRange(start=min(timestamps), end=max(timestamps)),
                dominant_level=dominant,
            ),
        )


def _make_group(logs: List[NormalizedLog]) -> LogGroup:
    counts = level_counts(logs)
    dominant = LogLevel.info
    best = 0
    for level in _GROUP_DOMINANT_CANDIDATES:
        if counts[level] > best:
            best = counts[level]
            dominant = level

    return LogGroup(
        start_time=logs[0].timestamp,
        end_time=logs[-1].timestamp,
        logs=logs,
        error_count=counts[LogLevel.error] + counts[LogLevel.fatal],
        warn_count=counts[LogLevel.warn],
        dominant_level=dominant,
    )


def _empty_result(now: datetime) -> LogParserResult:
    return LogParserResult(
        logs=[],
        errors=[],
        groups=[],
        spikes=[],
        summary=LogSummary(
            total_logs=0,
            error_count=0,
            warn_count=0,
            time_range=TimeRange(start=now, end=now),
            dominant_level=LogLevel.info,
        ),
    )
