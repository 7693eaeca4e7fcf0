"""
Constants and configuration for the incident signal engine.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import os
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


SIGNALS_PROMETHEUS_URL: str = os.getenv("SIGNALS_PROMETHEUS_URL", "").rstrip("/")
SIGNALS_PROMETHEUS_TIMEOUT: int = int(os.getenv("SIGNALS_PROMETHEUS_TIMEOUT", "10"))
SIGNALS_REASONING_TIMEOUT: float = float(os.getenv("SIGNALS_REASONING_TIMEOUT", "30"))
SIGNALS_REASONING_URL: str = os.getenv("SIGNALS_REASONING_URL", "").rstrip("/")

# weight values assigned to severity labels for comparison and ranking
SEVERITY_WEIGHTS: Dict[str, int] = {
    "low": 1,
    "medium": 2,
    "high": 4,
    "critical": 8,
}

DEFAULT_CRITICAL_METRICS: List[str] = [
    "container_cpu_usage_seconds_total",
    "container_memory_usage_bytes",
    "http_requests_total",
    "http_request_duration_seconds",
    "kube_pod_container_status_restarts_total",
    "kube_deployment_status_replicas_unavailable",
]


class Settings(BaseSettings):
    # log parsing
    log_max_age_ms: int = 3_600_000
    log_spike_threshold: float = 2.0
    log_time_window_ms: int = 30_000
    log_spike_sample_limit: int = 5
    log_format_sample_lines: int = 10
    log_json_detect_ratio: float = 0.7
    log_k8s_detect_ratio: float = 0.5

    # metric processing
    prometheus_url: Optional[str] = SIGNALS_PROMETHEUS_URL or None
    prometheus_timeout: int = SIGNALS_PROMETHEUS_TIMEOUT
    metric_anomaly_threshold: float = 2.0
    metric_baseline_window_ms: int = 300_000
    metric_step_ms: int = 15_000
    metric_critical_metrics: List[str] = DEFAULT_CRITICAL_METRICS
    metric_trend_slope_threshold: float = 0.05
    metric_trend_cv_threshold: float = 0.5
    metric_direction_threshold_pct: float = 5.0
    metric_significant_change_pct: float = 20.0
    metric_anomaly_score_cap: float = 5.0

    # event stream
    event_max_age_ms: int = 3_600_000
    event_correlation_window_ms: int = 300_000
    event_trigger_min_score: float = 0.2

    # correlation engine
    correlation_window_ms: int = 30_000
    min_correlation_confidence: float = 0.5
    max_correlations: int = 20
    causality_time_threshold_ms: int = 300_000
    reasoning_url: Optional[str] = SIGNALS_REASONING_URL or None
    enable_external_correlation: bool = True
    reasoning_timeout_seconds: float = SIGNALS_REASONING_TIMEOUT
    max_alternative_hypotheses: int = 3
    max_parallel_analyses: int = 4

    model_config = {
        "env_prefix": "SIGNALS_",
        "extra": "ignore",
    }


settings = Settings()
