"""
Infrastructure event ingestion: git and deploy records, Kubernetes events, timelines and trigger scoring.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.events.kubernetes import convert_k8s_events, parse_kubernetes_events
from engine.events.stream import EventStream

__all__ = ["EventStream", "convert_k8s_events", "parse_kubernetes_events"]
