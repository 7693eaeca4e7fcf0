"""
Prometheus Connector

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from config import SIGNALS_PROMETHEUS_TIMEOUT
from datasources.base import MetricsConnector
from datasources.exceptions import DataSourceUnavailable, InvalidQuery, QueryTimeout
from datasources.helpers import fetch_json
from datasources.retry import retry
from engine.timestamps import from_epoch
from schemas.ingestion import Metric


class PrometheusConnector(MetricsConnector):
    def __init__(
        self,
        base_url: str,
        timeout: float = SIGNALS_PROMETHEUS_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(base_url, timeout, headers)

    @retry(attempts=3, delay=0.5, backoff=2.0, exceptions=(DataSourceUnavailable, QueryTimeout))
    async def query_range(
        self,
        query: str,
        start: float,
        end: float,
        step: float,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/api/v1/query_range"
        params: Dict[str, Any] = {"query": query, "start": start, "end": end, "step": step}
        return await fetch_json(
            url,
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
            invalid_msg="Prometheus query failed",
            timeout_msg="Prometheus query timed out",
            unavailable_msg="Cannot reach Prometheus at",
        )


def matrix_to_metrics(query: str, payload: Dict[str, Any]) -> List[Metric]:
    """Flatten a ``query_range`` matrix response into samples.

    Series without ``__name__`` (e.g. ``rate()`` results) are named after the query.
    """
    if payload.get("status") != "success":
        raise InvalidQuery(f"Prometheus returned status {payload.get('status')!r}: {payload.get('error', '')}")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise InvalidQuery("Prometheus query failed: response has no data object")
    result = data.get("result") or []
    if not isinstance(result, list):
        raise InvalidQuery("Prometheus query failed: result is not a list")

    metrics: List[Metric] = []
    for series in result:
        if not isinstance(series, dict):
            raise InvalidQuery("Prometheus query failed: series is not an object")
        raw_labels = series.get("metric") or {}
        values = series.get("values") or []
        if not isinstance(raw_labels, dict) or not isinstance(values, list):
            raise InvalidQuery("Prometheus query failed: malformed series")
        labels = {str(k): str(v) for k, v in raw_labels.items()}
        name = labels.pop("__name__", None) or query
        for point in values:
            try:
                ts, raw_value = point
                metrics.append(Metric(
                    name=name,
                    timestamp=from_epoch(float(ts)),
                    value=float(raw_value),
                    labels=labels,
                ))
            except (TypeError, ValueError):
                continue
    return metrics
