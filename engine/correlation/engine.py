"""
Correlation engine: evidence adaptation, time alignment, correlation, causal inference and hypotheses in one pipeline.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from config import settings
from engine.correlation.alignment import align_by_time
from engine.correlation.causality import find_trigger_event, generate_root_cause_hypotheses, infer_causality
from engine.correlation.heuristic import find_correlations_heuristic
from engine.correlation.signals import SignalSet, evidence_to_signals
from engine.correlation.strategy import (
    CorrelationStrategy,
    ExternalReasoningStrategy,
    HeuristicStrategy,
    ReasoningClient,
)
from schemas.correlation import (
    AlignedData,
    CausalChain,
    Correlation,
    CorrelationResult,
    CorrelationSummary,
    EventSignal,
    LogSignal,
    MetricSignal,
    Signal,
    VisualSignal,
)
from schemas.evidence import Evidence

log = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], Any]

ANALYSIS_STARTED = "analysis_started"
CORRELATIONS_FOUND = "correlations_found"
ANALYSIS_COMPLETED = "analysis_completed"
ANALYSIS_FAILED = "analysis_failed"


class CorrelationEngine:
    """Turns evidence records for one incident into a ``CorrelationResult``.

    Correlations come from ``strategy`` when given; otherwise from the
    external reasoning service when a client is supplied and external
    correlation is enabled, falling back to local heuristics.
    """

    def __init__(
        self,
        reasoning_client: Optional[ReasoningClient] = None,
        strategy: Optional[CorrelationStrategy] = None,
        window_ms: Optional[int] = None,
        min_correlation_confidence: Optional[float] = None,
        max_correlations: Optional[int] = None,
        causality_time_threshold_ms: Optional[int] = None,
        listeners: Optional[Iterable[Listener]] = None,
    ) -> None:
        self.window_ms = settings.correlation_window_ms if window_ms is None else window_ms
        self.min_correlation_confidence = (
            settings.min_correlation_confidence if min_correlation_confidence is None else min_correlation_confidence
        )
        self.max_correlations = settings.max_correlations if max_correlations is None else max_correlations
        self.causality_time_threshold_ms = (
            settings.causality_time_threshold_ms if causality_time_threshold_ms is None else causality_time_threshold_ms
        )
        self.reasoning_client = reasoning_client
        self.listeners: List[Listener] = list(listeners or [])

        self._heuristic = HeuristicStrategy(self.min_correlation_confidence, self.max_correlations)
        if strategy is not None:
            self.strategy = strategy
        elif reasoning_client is not None and settings.enable_external_correlation:
            self.strategy = ExternalReasoningStrategy(
                reasoning_client, fallback=self._heuristic, max_correlations=self.max_correlations,
            )
        else:
            self.strategy = self._heuristic

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    async def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        for listener in self.listeners:
            try:
                outcome = listener(event, payload)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                log.exception("listener %r failed on %s", listener, event)

    def align_by_time(
        self,
        visual: Sequence[VisualSignal],
        logs: Sequence[LogSignal],
        metrics: Sequence[MetricSignal],
        events: Sequence[EventSignal],
    ) -> List[AlignedData]:
        return align_by_time(visual, logs, metrics, events, self.window_ms)

    def evidence_to_signals(self, evidence: Iterable[Evidence]) -> SignalSet:
        return evidence_to_signals(evidence)

    def find_correlations_heuristic(self, aligned: Sequence[AlignedData]) -> List[Correlation]:
        return find_correlations_heuristic(aligned, self.min_correlation_confidence, self.max_correlations)

    async def find_correlations_external(self, aligned: Sequence[AlignedData], incident_id: str) -> List[Correlation]:
        if self.reasoning_client is None:
            log.info("no reasoning client configured for incident=%s; using heuristics", incident_id)
            return self.find_correlations_heuristic(aligned)
        strategy = ExternalReasoningStrategy(
            self.reasoning_client, fallback=self._heuristic, max_correlations=self.max_correlations,
        )
        return await strategy.find_correlations(aligned, incident_id)

    def infer_causality(self, correlations: Sequence[Correlation], signals: Sequence[Signal]) -> Optional[CausalChain]:
        return infer_causality(correlations, signals, self.causality_time_threshold_ms)

    async def analyze(self, evidence: Sequence[Evidence], incident_id: str) -> CorrelationResult:
        await self._emit(ANALYSIS_STARTED, {"incident_id": incident_id, "evidence_count": len(evidence)})
        try:
            result = await self._analyze(evidence, incident_id)
        except Exception as exc:
            log.exception("correlation analysis failed for incident=%s", incident_id)
            await self._emit(ANALYSIS_FAILED, {"incident_id": incident_id, "error": str(exc)})
            return CorrelationResult.empty(incident_id=incident_id, strategy=self.strategy.name, error=str(exc))

        await self._emit(ANALYSIS_COMPLETED, {"incident_id": incident_id, "result": result})
        return result

    async def _analyze(self, evidence: Sequence[Evidence], incident_id: str) -> CorrelationResult:
        signals = self.evidence_to_signals(evidence)
        aligned = self.align_by_time(signals.visual, signals.logs, signals.metrics, signals.events)

        correlations = await self.strategy.find_correlations(aligned, incident_id)
        await self._emit(CORRELATIONS_FOUND, {"incident_id": incident_id, "correlations": correlations})

        everything = signals.all()
        chain = self.infer_causality(correlations, everything)
        hypotheses = generate_root_cause_hypotheses(chain, everything, self.causality_time_threshold_ms)

        log.info(
            "incident=%s signals=%d windows=%d correlations=%d chain=%s",
            incident_id, len(everything), len(aligned), len(correlations), chain is not None,
        )
        return CorrelationResult(
            aligned_data=aligned,
            correlations=correlations,
            causal_chain=chain,
            trigger_event=find_trigger_event(chain, everything),
            root_cause_hypotheses=hypotheses,
            summary=CorrelationSummary(
                total_signals=len(everything),
                time_windows=len(aligned),
                correlations_found=len(correlations),
                has_causal_chain=chain is not None,
                confidence_score=float(np.mean([c.confidence for c in correlations])) if correlations else 0.0,
            ),
            metadata={"incident_id": incident_id, "strategy": self.strategy.name},
        )

    async def analyze_many(
        self,
        batches: Sequence[Tuple[str, Sequence[Evidence]]],
        max_parallel: Optional[int] = None,
    ) -> List[CorrelationResult]:
        sem = asyncio.Semaphore(max(1, int(settings.max_parallel_analyses if max_parallel is None else max_parallel)))

        async def _run(incident_id: str, evidence: Sequence[Evidence]) -> CorrelationResult:
            async with sem:
                return await self.analyze(evidence, incident_id)

        return list(await asyncio.gather(*[_run(incident_id, evidence) for incident_id, evidence in batches]))
