"""
Parser for the line-oriented Prometheus text exposition format.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from engine.timestamps import from_ms
from schemas.ingestion import Metric

log = logging.getLogger(__name__)

_LINE_RE = re.compile(
    r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)"
    r"(?P<labels>\{[^}]*\})?\s+"
    r"(?P<value>[+-]?(?:[\d.]+(?:[eE][+-]?\d+)?|NaN|Inf))"
    r"(?:\s+(?P<ts>-?\d+))?\s*$"
)
_LABEL_RE = re.compile(r'(\w+)="((?:[^"\\]|\\.)*)"')


def parse_labels(raw: Optional[str]) -> Dict[str, str]:
    if not raw:
        return {}
    return {key: value.replace('\\"', '"').replace("\\\\", "\\") for key, value in _LABEL_RE.findall(raw)}


def parse_line(line: str, now: datetime) -> Optional[Metric]:
    match = _LINE_RE.match(line.strip())
    if not match:
        return None
    try:
        value = float(match.group("value"))
    except ValueError:
        return None

    ts_raw = match.group("ts")
    return Metric(
        name=match.group("name"),
        timestamp=from_ms(int(ts_raw)) if ts_raw else now,
        value=value,
        labels=parse_labels(match.group("labels")),
    )


def parse_exposition(text: str, now: datetime) -> List[Metric]:
    metrics: List[Metric] = []
    skipped = 0
    lines = (text or "").splitlines()
    for line in lines:
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        metric = parse_line(line, now)
        if metric is None:
            skipped += 1
            log.debug("skipping unparsable exposition line: %.100s", line)
            continue
        metrics.append(metric)

    log.debug("parsed %d samples from %d lines (skipped=%d)", len(metrics), len(lines), skipped)
    return metrics
