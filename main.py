"""
Command line entry point for the incident signal reasoning core.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from config import settings
from connectors.reasoning import HttpReasoningClient
from engine.correlation import CorrelationEngine
from engine.enums import LogFormat
from engine.events import EventStream
from engine.logs import LogParser
from engine.metrics import MetricProcessor
from engine.timestamps import parse_timestamp
from schemas.evidence import Evidence

log = logging.getLogger(__name__)

_EVIDENCE_LIST = TypeAdapter(List[Evidence])


def _read(path: Optional[str]) -> str:
    if not path or path == "-":
        return sys.stdin.read()
    with open(path, encoding="utf-8") as fh:
        return fh.read()


def _emit(payload: str) -> None:
    sys.stdout.write(payload + "\n")


def _cmd_logs(args: argparse.Namespace) -> int:
    parser = LogParser()
    raw = _read(args.input)
    if args.format and args.format != LogFormat.auto.value:
        logs = parser.parse(raw, format=LogFormat(args.format), source=args.source)
        _emit(json.dumps([entry.model_dump(mode="json") for entry in logs], indent=2))
        return 0
    _emit(parser.analyze(raw, source=args.source).model_dump_json(indent=2))
    return 0


def _cmd_metrics(args: argparse.Namespace) -> int:
    processor = MetricProcessor()
    metrics = processor.ingest_prometheus_format(_read(args.input))
    baseline = processor.ingest_prometheus_format(_read(args.baseline)) if args.baseline else None
    _emit(processor.analyze(metrics, baseline).model_dump_json(indent=2))
    return 0


def _cmd_events(args: argparse.Namespace) -> int:
    stream = EventStream()
    events = stream.convert_k8s_events(stream.parse_kubernetes_events(_read(args.input)))
    if args.incident_time:
        incident_time = parse_timestamp(args.incident_time)
        if incident_time is None:
            log.error("cannot parse incident time %r", args.incident_time)
            return 2
        triggers = stream.find_potential_triggers(events, incident_time)
        _emit(json.dumps([t.model_dump(mode="json") for t in triggers], indent=2))
        return 0
    if not events:
        _emit("[]")
        return 0
    start = min(e.timestamp for e in events)
    end = max(e.timestamp for e in events)
    _emit(stream.build_event_timeline(events, start, end).model_dump_json(indent=2))
    return 0


def _cmd_correlate(args: argparse.Namespace) -> int:
    try:
        evidence = _EVIDENCE_LIST.validate_json(_read(args.input))
    except ValidationError as exc:
        log.error("invalid evidence document: %s", exc)
        return 2

    reasoning_url = args.reasoning_url or settings.reasoning_url
    client = HttpReasoningClient(reasoning_url) if reasoning_url else None
    engine = CorrelationEngine(reasoning_client=client, window_ms=args.window_ms)
    result = asyncio.run(engine.analyze(evidence, args.incident_id))
    _emit(result.model_dump_json(indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="signals", description="Incident signal parsing and correlation")
    sub = parser.add_subparsers(dest="command", required=True)

    logs = sub.add_parser("logs", help="parse and analyze raw log text")
    logs.add_argument("input", nargs="?", default="-")
    logs.add_argument("--source", default="unknown")
    logs.add_argument("--format", choices=[f.value for f in LogFormat], default=LogFormat.auto.value)
    logs.set_defaults(func=_cmd_logs)

    metrics = sub.add_parser("metrics", help="analyze Prometheus exposition text")
    metrics.add_argument("input", nargs="?", default="-")
    metrics.add_argument("--baseline", help="exposition file used as the comparison baseline")
    metrics.set_defaults(func=_cmd_metrics)

    events = sub.add_parser("events", help="parse kubectl events output")
    events.add_argument("input", nargs="?", default="-")
    events.add_argument("--incident-time", help="score trigger candidates around this timestamp")
    events.set_defaults(func=_cmd_events)

    correlate = sub.add_parser("correlate", help="correlate a JSON list of evidence records")
    correlate.add_argument("input", nargs="?", default="-")
    correlate.add_argument("--incident-id", default="incident")
    correlate.add_argument("--window-ms", type=int, default=None)
    correlate.add_argument("--reasoning-url", default=None)
    correlate.set_defaults(func=_cmd_correlate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
