"""
Test cases for the command line entry point.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import json

import pytest

import main
from config import settings


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])


def test_logs_plaintext_listing(tmp_path, capsys):
    path = write(tmp_path, "app.log", "ERROR db connection refused\nINFO retrying\n")
    assert main.main(["logs", path, "--format", "plaintext", "--source", "api"]) == 0
    entries = json.loads(capsys.readouterr().out)
    assert [e["level"] for e in entries] == ["error", "info"]
    assert entries[0]["source"] == "api"


def test_logs_analysis(tmp_path, capsys):
    path = write(tmp_path, "app.log", "ERROR db connection refused\nWARN pool almost full\n")
    assert main.main(["logs", path]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["summary"]["total_logs"] == 2
    assert result["summary"]["error_count"] == 1
    assert result["summary"]["warn_count"] == 1


def test_metrics_command(tmp_path, capsys):
    path = write(tmp_path, "metrics.prom", 'http_requests_total{pod="api-0"} 10\n')
    assert main.main(["metrics", path]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["metrics"][0]["name"] == "http_requests_total"
    assert result["anomalies"] == []


def test_correlate_command(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr(settings, "reasoning_url", None)
    evidence = [
        {
            "id": "deploy",
            "incident_id": "inc-1",
            "type": "k8s_event",
            "source": "kubelet",
            "content": {"type": "deploy", "severity": "warning", "description": "Deployment api revision 7"},
            "timestamp": "2024-01-15T12:00:00Z",
        },
        {
            "id": "err",
            "incident_id": "inc-1",
            "type": "log",
            "source": "api",
            "content": {"severity": "error", "description": "upstream timeout"},
            "timestamp": "2024-01-15T12:00:10Z",
        },
    ]
    path = write(tmp_path, "evidence.json", json.dumps(evidence))
    assert main.main(["correlate", path, "--incident-id", "inc-1"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["metadata"] == {"incident_id": "inc-1", "strategy": "heuristic"}
    assert result["causal_chain"]["root_cause"]["id"] == "deploy"


def test_correlate_rejects_invalid_evidence(tmp_path, capsys):
    path = write(tmp_path, "evidence.json", '[{"id": "x"}]')
    assert main.main(["correlate", path]) == 2
    assert capsys.readouterr().out == ""
