"""
Test cases for the HTTP reasoning service client and its error mapping.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import httpx
import pytest

from connectors.reasoning import HttpReasoningClient
from datasources.exceptions import ReasoningResponseError, ReasoningUnavailable


class Response:
    def __init__(self, status_code=200, body=None, invalid=False):
        self.status_code = status_code
        self.text = "error" if status_code >= 400 else ""
        self._body = body if body is not None else {}
        self._invalid = invalid

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError("err", request=None, response=self)

    def json(self):
        if self._invalid:
            raise ValueError("not json")
        return self._body


class PostClient:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url, json=None, headers=None):
        self.calls.append((url, json, headers))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.mark.asyncio
async def test_correlate_posts_windows(monkeypatch):
    client = PostClient(Response(body={"correlations": []}))
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: client)
    windows = [{"timestamp": "2024-01-15T12:00:00+00:00", "dominant_signal_type": "log", "signals": []}]

    reply = await HttpReasoningClient("http://reasoner:8080/").correlate("inc-7", windows)

    assert reply == {"correlations": []}
    url, body, headers = client.calls[0]
    assert url == "http://reasoner:8080/v1/correlate"
    assert body == {"incident_id": "inc-7", "windows": windows}
    assert headers["Accept"] == "application/json"


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome,expected", [
    (Response(status_code=500), ReasoningResponseError),
    (Response(invalid=True), ReasoningResponseError),
    (httpx.ConnectError("refused"), ReasoningUnavailable),
    (httpx.ReadTimeout("slow"), ReasoningUnavailable),
])
async def test_correlate_maps_failures(monkeypatch, outcome, expected):
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: PostClient(outcome))
    with pytest.raises(expected):
        await HttpReasoningClient("http://reasoner:8080").correlate("inc-7", [])
