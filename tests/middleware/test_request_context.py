"""Tests for the request context middleware.

Every response carries an X-Request-ID (generated or echoed), and every
log line emitted while serving the request carries the same id.
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert resp.headers.get("x-request-id") == "trace-123"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/courses/999")
    assert resp.status_code == 404
    assert resp.headers.get("x-request-id") is not None


def test_completion_line_is_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="ledger_indexer.middleware.request_context"):
        client.get("/v1/stats/cursor", headers={"X-Request-ID": "trace-456"})

    [record] = [r for r in caplog.records if r.name.endswith("request_context")]
    assert record.getMessage().startswith("GET /v1/stats/cursor -> 200")
    assert record.path == "/v1/stats/cursor"  # type: ignore[attr-defined]
    assert record.status_code == 200  # type: ignore[attr-defined]
