"""
Metric ingestion: Prometheus exposition parsing, anomaly detection, trend summaries and baseline comparison.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.metrics.exposition import parse_exposition
from engine.metrics.processor import MetricProcessor

__all__ = ["MetricProcessor", "parse_exposition"]
