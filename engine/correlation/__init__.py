"""
Cross-modal correlation: signal adaptation, time alignment, correlation strategies and causal inference.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.correlation.alignment import align_by_time
from engine.correlation.causality import infer_causality
from engine.correlation.engine import CorrelationEngine
from engine.correlation.heuristic import find_correlations_heuristic
from engine.correlation.signals import SignalSet, evidence_to_signals
from engine.correlation.strategy import (
    CorrelationStrategy,
    ExternalReasoningStrategy,
    HeuristicStrategy,
    ReasoningClient,
)

__all__ = [
    "align_by_time",
    "infer_causality",
    "CorrelationEngine",
    "find_correlations_heuristic",
    "SignalSet",
    "evidence_to_signals",
    "CorrelationStrategy",
    "ExternalReasoningStrategy",
    "HeuristicStrategy",
    "ReasoningClient",
]
