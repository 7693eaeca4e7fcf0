"""
Line-level log format detection and normalization for JSON, Kubernetes-prefixed and plaintext logs.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from config import settings
from engine.enums import LogFormat, LogLevel
from engine.timestamps import parse_timestamp
from schemas.ingestion import NormalizedLog

log = logging.getLogger(__name__)

_TIMESTAMP_PATTERNS = (
    re.compile(r"^\[?(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:[.,]\d+)?(?:Z|[+-]\d{2}:?\d{2})?)\]?\s*"),
    re.compile(r"^\[?(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}(?:[.,]\d+)?)\]?\s*"),
    re.compile(r"^(\d{10,13})\s+"),
)

# first match wins
_LEVEL_PATTERNS: Tuple[Tuple[LogLevel, re.Pattern], ...] = (
    (LogLevel.fatal, re.compile(r"\b(fatal|crit(?:ical)?)\b", re.I)),
    (LogLevel.error, re.compile(r"\b(err(?:or)?|fail(?:ed)?|exception)\b", re.I)),
    (LogLevel.warn, re.compile(r"\b(warn(?:ing)?)\b", re.I)),
    (LogLevel.info, re.compile(r"\b(info(?:rmation)?)\b", re.I)),
    (LogLevel.debug, re.compile(r"\b(debug|trace|verbose)\b", re.I)),
)

_ERROR_TYPE_PATTERNS = (
    re.compile(r"(\w+Error):"),
    re.compile(r"(\w+Exception):"),
    re.compile(r"panic:\s*(\w+)"),
    re.compile(r"FATAL:\s*(\w+)"),
    re.compile(r"ERROR\s+(\w+)"),
)

_STACK_PATTERNS = (
    re.compile(r"^\s+at\s+"),
    re.compile(r"^\s+File\s+\""),
    re.compile(r"^\s+\d+:\s"),
    re.compile(r"Traceback \(most recent call last\)", re.I),
)

_TRACEBACK_TAIL = re.compile(r"^[\w.]+(?:Error|Exception|Exit|Interrupt)\b")

# pod names are lowercase DNS labels; kubectl --prefix renders [pod/<pod>/<container>]
_K8S_PREFIX = re.compile(
    r"^(?:\[(?P<bracketed>[a-z0-9][a-z0-9./-]*)\]|(?P<bare>[a-z0-9](?:[a-z0-9.-]*[a-z0-9])?):)\s+"
)

_JSON_TIMESTAMP_KEYS = ("timestamp", "time", "@timestamp", "ts")
_JSON_LEVEL_KEYS = ("level", "severity", "lvl", "log_level")
_JSON_MESSAGE_KEYS = ("message", "msg", "log", "text")
_JSON_TRACE_KEYS = ("trace_id", "traceId", "x-trace-id")
_JSON_SPAN_KEYS = ("span_id", "spanId", "x-span-id")
_JSON_ERROR_TYPE_KEYS = ("error_type", "errorType", "exception_type")

UNKNOWN_ERROR = "UnknownError"


def make_log_id(source: str, index: int, raw: str) -> str:
    digest = hashlib.sha1(f"{source}\x00{index}\x00{raw}".encode("utf-8", "replace")).hexdigest()
    return f"log-{digest[:16]}"


def _first(obj: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = obj.get(key)
        if value is not None and value != "":
            return value
    return None


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _load_object(line: str) -> Optional[Dict[str, Any]]:
    text = line.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def detect_format(
    sample: str,
    sample_lines: Optional[int] = None,
    json_ratio: Optional[float] = None,
    k8s_ratio: Optional[float] = None,
) -> LogFormat:
    if sample_lines is None:
        sample_lines = settings.log_format_sample_lines
    if json_ratio is None:
        json_ratio = settings.log_json_detect_ratio
    if k8s_ratio is None:
        k8s_ratio = settings.log_k8s_detect_ratio

    lines = [line for line in (sample or "").splitlines() if line.strip()][:sample_lines]
    if not lines:
        return LogFormat.plaintext

    json_count = sum(1 for line in lines if _load_object(line) is not None)
    if json_count >= len(lines) * json_ratio:
        return LogFormat.json

    k8s_count = sum(1 for line in lines if _K8S_PREFIX.match(line))
    if k8s_count >= len(lines) * k8s_ratio:
        return LogFormat.kubernetes

    return LogFormat.plaintext


def normalize_level(value: Any) -> LogLevel:
    normalized = str(value if value is not None else "info").strip().lower()
    if "fatal" in normalized or "crit" in normalized:
        return LogLevel.fatal
    if "err" in normalized or "fail" in normalized:
        return LogLevel.error
    if "warn" in normalized:
        return LogLevel.warn
    if "debug" in normalized or "trace" in normalized:
        return LogLevel.debug
    return LogLevel.info


def extract_level(text: str) -> LogLevel:
    for level, pattern in _LEVEL_PATTERNS:
        if pattern.search(text):
            return level
    return LogLevel.info


def extract_error_type(text: str) -> str:
    for pattern in _ERROR_TYPE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return UNKNOWN_ERROR


def is_stack_line(line: str) -> bool:
    return any(p.search(line) for p in _STACK_PATTERNS)


def is_traceback_tail(line: str) -> bool:
    return bool(_TRACEBACK_TAIL.match(line))


def split_timestamp(line: str) -> Tuple[Optional[datetime], str]:
    for pattern in _TIMESTAMP_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        raw_ts = match.group(1)
        if not raw_ts.isdigit():
            raw_ts = re.sub(r"\s+", " ", raw_ts)
        ts = parse_timestamp(raw_ts if not raw_ts.isdigit() else int(raw_ts))
        if ts is not None:
            return ts, line[match.end():].strip()
    return None, line.strip()


def split_pod_prefix(line: str) -> Tuple[Optional[str], Optional[str], str]:
    match = _K8S_PREFIX.match(line)
    if not match:
        return None, None, line
    rest = line[match.end():]
    bare = match.group("bare")
    if bare:
        return bare, None, rest
    parts = match.group("bracketed").split("/")
    if len(parts) == 3 and parts[0] == "pod":
        return parts[1], parts[2], rest
    return match.group("bracketed"), None, rest


def parse_json_line(line: str, source: str, log_id: str, now: datetime) -> Optional[NormalizedLog]:
    obj = _load_object(line)
    if obj is None:
        log.debug("skipping non-JSON line: %.100s", line)
        return None

    timestamp = parse_timestamp(_first(obj, _JSON_TIMESTAMP_KEYS)) or now
    message = _first(obj, _JSON_MESSAGE_KEYS)
    return NormalizedLog(
        id=log_id,
        timestamp=timestamp,
        level=normalize_level(_first(obj, _JSON_LEVEL_KEYS)),
        source=source,
        message=str(message) if message is not None else "",
        metadata=obj,
        raw=line,
        error_type=_opt_str(_first(obj, _JSON_ERROR_TYPE_KEYS)),
        trace_id=_opt_str(_first(obj, _JSON_TRACE_KEYS)),
        span_id=_opt_str(_first(obj, _JSON_SPAN_KEYS)),
        pod_name=_opt_str(obj.get("pod_name")),
        container_name=_opt_str(obj.get("container_name")),
    )


def parse_plaintext_line(line: str, source: str, log_id: str, now: datetime) -> Optional[NormalizedLog]:
    if not line.strip():
        return None

    timestamp, remainder = split_timestamp(line)
    level = extract_level(remainder)
    return NormalizedLog(
        id=log_id,
        timestamp=timestamp or now,
        level=level,
        source=source,
        message=remainder,
        metadata={},
        raw=line,
        error_type=extract_error_type(remainder) if level.is_error else None,
    )


def parse_kubernetes_line(line: str, source: str, log_id: str, now: datetime) -> Optional[NormalizedLog]:
    pod_name, container_name, rest = split_pod_prefix(line)
    parsed = parse_plaintext_line(rest, source, log_id, now)
    if parsed is None:
        return None

    parsed.raw = line
    if pod_name:
        parsed.pod_name = pod_name
        parsed.metadata["pod_name"] = pod_name
    if container_name:
        parsed.container_name = container_name
        parsed.metadata["container_name"] = container_name
    return parsed


LINE_PARSERS = {
    LogFormat.json: parse_json_line,
    LogFormat.kubernetes: parse_kubernetes_line,
    LogFormat.plaintext: parse_plaintext_line,
}


def level_counts(logs: List[NormalizedLog]) -> Dict[LogLevel, int]:
    counts = {level: 0 for level in LogLevel}
    for entry in logs:
        counts[entry.level] += 1
    return counts
