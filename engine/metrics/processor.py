"""
Metric processor: exposition ingestion, anomaly detection, series summaries, baseline comparison and Prometheus queries.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from config import settings
from connectors.prometheus import PrometheusConnector, matrix_to_metrics
from datasources.exceptions import DataSourceError
from engine.constants import K8S_METRIC_FALLBACK_NAMES, K8S_METRIC_QUERIES
from engine.enums import Direction, Severity, Trend
from engine.metrics.exposition import parse_exposition
from engine.metrics.stats import (
    anomaly_score,
    classify_trend,
    compute_stats,
    group_series,
    latest_deviation,
    severity_for,
    z_score,
)
from engine.timestamps import Clock, elapsed_ms, ensure_utc, utcnow
from schemas.ingestion import (
    K8sMetrics,
    Metric,
    MetricAnomaly,
    MetricComparison,
    MetricProcessorResult,
    MetricSummary,
)

log = logging.getLogger(__name__)


class MetricProcessor:
    """Statistical views over metric samples grouped by ``(name, labels)``.

    ``connector`` is only needed for the async Prometheus helpers; without one
    (and without ``SIGNALS_PROMETHEUS_URL``) they return empty results.
    """

    def __init__(
        self,
        anomaly_threshold: Optional[float] = None,
        baseline_window_ms: Optional[int] = None,
        critical_metrics: Optional[Sequence[str]] = None,
        step_ms: Optional[int] = None,
        connector: Optional[PrometheusConnector] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.anomaly_threshold = settings.metric_anomaly_threshold if anomaly_threshold is None else anomaly_threshold
        self.baseline_window_ms = settings.metric_baseline_window_ms if baseline_window_ms is None else baseline_window_ms
        self.critical_metrics = list(settings.metric_critical_metrics if critical_metrics is None else critical_metrics)
        self.step_ms = settings.metric_step_ms if step_ms is None else step_ms
        self._clock = clock or utcnow
        if connector is None and settings.prometheus_url:
            connector = PrometheusConnector(settings.prometheus_url, timeout=settings.prometheus_timeout)
        self.connector = connector

    def ingest_prometheus_format(self, text: str) -> List[Metric]:
        return parse_exposition(text, self._clock())

    def detect_anomalies(
        self,
        metrics: List[Metric],
        baseline: Optional[List[Metric]] = None,
    ) -> List[MetricAnomaly]:
        """Flag the latest point of each series whose z-score exceeds the threshold.

        Without ``baseline`` every series is judged against its own earlier
        points. With ``baseline`` the matching baseline series supplies the
        statistics and series missing from it fall back to the first form.
        """
        baseline_groups = group_series(baseline) if baseline else {}
        anomalies: List[MetricAnomaly] = []

        for key, points in group_series(metrics).items():
            reference = baseline_groups.get(key)
            if reference:
                stats = compute_stats([p.value for p in reference])
                if stats.count == 0:
                    continue
                z = z_score(points[-1].value, stats)
            elif len(points) >= 2:
                z, stats = latest_deviation(points)
            else:
                continue

            if abs(z) <= self.anomaly_threshold:
                continue

            latest = points[-1]
            spread = self.anomaly_threshold * stats.std
            anomalies.append(MetricAnomaly(
                metric=latest.name,
                timestamp=latest.timestamp,
                value=latest.value,
                expected_range=(stats.mean - spread, stats.mean + spread),
                deviation=z,
                severity=severity_for(z, latest.name, self.critical_metrics),
                labels=dict(latest.labels),
            ))

        anomalies.sort(key=lambda a: abs(a.deviation), reverse=True)
        log.info(
            "anomaly detection: %d anomalies (%d critical)",
            len(anomalies),
            sum(1 for a in anomalies if a.severity == Severity.critical),
        )
        return anomalies

    def correlate_with_timestamp(
        self,
        metrics: List[Metric],
        target: datetime,
        window_ms: Optional[int] = None,
    ) -> List[Metric]:
        window = self.baseline_window_ms if window_ms is None else window_ms
        half = window / 2
        target = ensure_utc(target)
        return [m for m in metrics if abs(elapsed_ms(target, m.timestamp)) <= half]

    def summarize(self, metrics: List[Metric]) -> List[MetricSummary]:
        summaries: List[MetricSummary] = []
        for points in group_series(metrics).values():
            values = [p.value for p in points]
            stats = compute_stats(values)
            z, _ = latest_deviation(points)
            summaries.append(MetricSummary(
                name=points[0].name,
                labels=dict(points[0].labels),
                min=stats.min,
                max=stats.max,
                avg=stats.mean,
                current=values[-1],
                trend=classify_trend(values),
                anomaly_score=anomaly_score(z),
                data_points=len(points),
            ))
        return summaries

    def compare_to_baseline(
        self,
        current: List[Metric],
        baseline: List[Metric],
    ) -> List[MetricComparison]:
        baseline_by_key: Dict = {
            (s.name, tuple(sorted(s.labels.items()))): s for s in self.summarize(baseline)
        }
        direction_pct = settings.metric_direction_threshold_pct
        significant_pct = settings.metric_significant_change_pct

        comparisons: List[MetricComparison] = []
        for summary in self.summarize(current):
            base = baseline_by_key.get((summary.name, tuple(sorted(summary.labels.items()))))
            if base is None:
                continue
            change = (summary.avg - base.avg) / base.avg * 100 if base.avg != 0 else 0.0
            if change > direction_pct:
                direction = Direction.up
            elif change < -direction_pct:
                direction = Direction.down
            else:
                direction = Direction.stable
            comparisons.append(MetricComparison(
                metric=summary.name,
                labels=summary.labels,
                current_value=summary.avg,
                baseline_value=base.avg,
                change_percent=change,
                significant=abs(change) > significant_pct,
                direction=direction,
            ))

        comparisons.sort(key=lambda c: abs(c.change_percent), reverse=True)
        return comparisons

    def analyze(
        self,
        metrics: List[Metric],
        baseline: Optional[List[Metric]] = None,
    ) -> MetricProcessorResult:
        try:
            return MetricProcessorResult(
                metrics=metrics,
                summaries=self.summarize(metrics),
                anomalies=self.detect_anomalies(metrics, baseline),
                comparisons=self.compare_to_baseline(metrics, baseline) if baseline else [],
            )
        except Exception:
            log.exception("metric analysis failed for %d samples", len(metrics))
            return MetricProcessorResult(metrics=metrics, summaries=[], anomalies=[], comparisons=[])

    async def query_prometheus(self, query: str, start: datetime, end: datetime) -> List[Metric]:
        if self.connector is None:
            log.warning("Prometheus URL not configured; skipping query %s", query)
            return []
        try:
            payload = await self.connector.query_range(
                query=query,
                start=ensure_utc(start).timestamp(),
                end=ensure_utc(end).timestamp(),
                step=self.step_ms / 1000,
            )
            metrics = matrix_to_metrics(query, payload)
        except DataSourceError as exc:
            log.warning("Prometheus query failed query=%s: %s", query, exc)
            return []
        log.info("Prometheus query=%s returned %d samples", query, len(metrics))
        return metrics

    async def get_k8s_metrics(
        self,
        namespace: str,
        deployment: str,
        duration_ms: Optional[int] = None,
    ) -> Optional[K8sMetrics]:
        if self.connector is None:
            log.warning("Prometheus URL not configured; no k8s metrics for %s/%s", namespace, deployment)
            return None

        duration = self.baseline_window_ms if duration_ms is None else duration_ms
        end = self._clock()
        start = end - timedelta(milliseconds=duration)
        fields = list(K8S_METRIC_QUERIES)
        queries = [K8S_METRIC_QUERIES[f].format(namespace=namespace, deployment=deployment) for f in fields]

        results = await asyncio.gather(*[self.query_prometheus(q, start, end) for q in queries])

        summaries = {
            field: self._first_summary(samples, K8S_METRIC_FALLBACK_NAMES[field], namespace, deployment)
            for field, samples in zip(fields, results)
        }
        return K8sMetrics(**summaries)

    def _first_summary(
        self,
        samples: List[Metric],
        name: str,
        namespace: str,
        deployment: str,
    ) -> MetricSummary:
        summaries = self.summarize(samples)
        if summaries:
            return summaries[0]
        return MetricSummary(
            name=name,
            labels={"namespace": namespace, "deployment": deployment},
            min=0.0,
            max=0.0,
            avg=0.0,
            current=0.0,
            trend=Trend.stable,
            anomaly_score=0.0,
            data_points=0,
        )
