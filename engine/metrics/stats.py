"""
Series statistics for metric samples: grouping, baselines, z-scores, severity and trend classification.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
from scipy.stats import linregress

from config import settings
from engine.enums import Severity, Trend
from schemas.ingestion import Metric

SeriesKey = Tuple[str, Tuple[Tuple[str, str], ...]]


@dataclass(frozen=True)
class SeriesStats:
    mean: float
    std: float
    min: float
    max: float
    count: int


def series_key(metric: Metric) -> SeriesKey:
    return metric.name, tuple(sorted(metric.labels.items()))


def group_series(metrics: Iterable[Metric]) -> Dict[SeriesKey, List[Metric]]:
    groups: Dict[SeriesKey, List[Metric]] = {}
    for metric in metrics:
        groups.setdefault(series_key(metric), []).append(metric)
    for points in groups.values():
        points.sort(key=lambda m: m.timestamp)
    return groups


def finite(values: Iterable[float]) -> List[float]:
    return [v for v in values if math.isfinite(v)]


def compute_stats(values: Sequence[float]) -> SeriesStats:
    arr = np.asarray(finite(values), dtype=float)
    if arr.size == 0:
        return SeriesStats(mean=0.0, std=0.0, min=0.0, max=0.0, count=0)
    return SeriesStats(
        mean=float(arr.mean()),
        std=float(arr.std()),
        min=float(arr.min()),
        max=float(arr.max()),
        count=int(arr.size),
    )


def z_score(value: float, stats: SeriesStats, cap: float | None = None) -> float:
    """Signed deviation of ``value`` from the baseline in standard deviations.

    A flat baseline has no spread, so any differing value is pinned to twice
    the anomaly score cap instead of dividing by zero.
    """
    if cap is None:
        cap = settings.metric_anomaly_score_cap
    if stats.std > 0:
        return (value - stats.mean) / stats.std
    if value == stats.mean:
        return 0.0
    return math.copysign(cap * 2, value - stats.mean)


def latest_deviation(points: Sequence[Metric]) -> Tuple[float, SeriesStats]:
    """z-score of the newest point against all earlier points of the series."""
    if len(points) < 2:
        return 0.0, compute_stats([p.value for p in points])
    stats = compute_stats([p.value for p in points[:-1]])
    latest = points[-1].value
    if not math.isfinite(latest) or stats.count == 0:
        return 0.0, stats
    return z_score(latest, stats), stats


def is_critical_metric(name: str, critical_metrics: Sequence[str] | None = None) -> bool:
    if critical_metrics is None:
        critical_metrics = settings.metric_critical_metrics
    return any(candidate in name for candidate in critical_metrics)


def severity_for(z: float, name: str, critical_metrics: Sequence[str] | None = None) -> Severity:
    az = abs(z)
    if az > 4:
        severity = Severity.critical
    elif az > 3:
        severity = Severity.high
    elif az > 2:
        severity = Severity.medium
    else:
        severity = Severity.low
    if is_critical_metric(name, critical_metrics):
        severity = severity.boosted()
    return severity


def classify_trend(
    values: Sequence[float],
    slope_threshold: float | None = None,
    cv_threshold: float | None = None,
) -> Trend:
    if slope_threshold is None:
        slope_threshold = settings.metric_trend_slope_threshold
    if cv_threshold is None:
        cv_threshold = settings.metric_trend_cv_threshold

    ys = finite(values)
    if len(ys) < 3:
        return Trend.stable

    stats = compute_stats(ys)
    if stats.mean == 0:
        return Trend.stable
    if stats.std / abs(stats.mean) > cv_threshold:
        return Trend.volatile

    slope = float(linregress(np.arange(len(ys), dtype=float), np.asarray(ys, dtype=float)).slope)
    normalized = slope / stats.mean
    if normalized > slope_threshold:
        return Trend.increasing
    if normalized < -slope_threshold:
        return Trend.decreasing
    return Trend.stable


def anomaly_score(z: float, cap: float | None = None) -> float:
    if cap is None:
        cap = settings.metric_anomaly_score_cap
    return min(abs(z) / cap, 1.0)
