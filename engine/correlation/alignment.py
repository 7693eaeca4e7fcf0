"""
Fixed-width time bucketing of signals from every modality.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from config import settings
from engine.constants import SIGNAL_TYPE_ORDER
from engine.enums import SignalType
from engine.timestamps import elapsed_ms
from schemas.correlation import (
    AlignedData,
    EventSignal,
    LogSignal,
    MetricSignal,
    Signal,
    TimeWindow,
    VisualSignal,
)

log = logging.getLogger(__name__)

_BUCKET_FIELDS = {
    SignalType.visual: "visual",
    SignalType.log: "logs",
    SignalType.metric: "metrics",
    SignalType.event: "events",
}


def chronological(signals: Sequence[Signal]) -> List[Signal]:
    return sorted(signals, key=lambda s: s.timestamp)


def dominant_type(counts: Dict[SignalType, int]) -> Optional[SignalType]:
    best: Optional[SignalType] = None
    for signal_type in SIGNAL_TYPE_ORDER:
        if counts.get(signal_type, 0) > 0 and (best is None or counts[signal_type] > counts[best]):
            best = signal_type
    return best


def align_by_time(
    visual: Sequence[VisualSignal],
    logs: Sequence[LogSignal],
    metrics: Sequence[MetricSignal],
    events: Sequence[EventSignal],
    window_ms: Optional[int] = None,
) -> List[AlignedData]:
    """Bucket signals into ``[min + k*window, min + (k+1)*window)`` slots.

    Empty slots are never produced. Within a slot each modality keeps
    chronological order.
    """
    if window_ms is None:
        window_ms = settings.correlation_window_ms
    if window_ms <= 0:
        raise ValueError("window_ms must be positive")

    everything: List[Signal] = [*visual, *logs, *metrics, *events]
    if not everything:
        return []

    origin = min(s.timestamp for s in everything)
    buckets: Dict[int, Dict[SignalType, List[Signal]]] = {}
    for signal in chronological(everything):
        index = int(elapsed_ms(origin, signal.timestamp) // window_ms)
        slot = buckets.setdefault(index, {t: [] for t in SIGNAL_TYPE_ORDER})
        slot[signal.type].append(signal)

    aligned: List[AlignedData] = []
    for index in sorted(buckets):
        slot = buckets[index]
        start = origin + timedelta(milliseconds=index * window_ms)
        counts = {t: len(members) for t, members in slot.items()}
        aligned.append(AlignedData(
            timestamp=start,
            window=TimeWindow(start=start, end=start + timedelta(milliseconds=window_ms)),
            signal_count=sum(counts.values()),
            dominant_signal_type=dominant_type(counts),
            **{_BUCKET_FIELDS[t]: members for t, members in slot.items()},
        ))

    log.debug("aligned %d signals into %d windows of %dms", len(everything), len(aligned), window_ms)
    return aligned
