"""Shared fixtures and test utilities for HTTP VCR tests."""

from datetime import datetime
from typing import List

import httpx
import pytest

from http_vcr.core.format import (
    Cassette,
    CassetteMetadata,
    Interaction,
    RecordedRequest,
    RecordedResponse,
)
from http_vcr.core.storage import CassetteStorage


# ===== Upstream Fixtures =====


def ok_handler(request: httpx.Request) -> httpx.Response:
    """Upstream that answers every request with 200 "ok"."""
    return httpx.Response(200, headers={"Content-Type": "text/plain"}, text="ok")


def echo_handler(request: httpx.Request) -> httpx.Response:
    """Upstream that echoes the request body back as JSON."""
    return httpx.Response(
        201,
        json={
            "method": request.method,
            "path": request.url.path,
            "body": request.content.decode("utf-8", errors="replace"),
        },
    )


@pytest.fixture
def ok_upstream() -> httpx.MockTransport:
    """Fake upstream answering 200 "ok"."""
    return httpx.MockTransport(ok_handler)


@pytest.fixture
def echo_upstream() -> httpx.MockTransport:
    """Fake upstream echoing the request back."""
    return httpx.MockTransport(echo_handler)


@pytest.fixture
def failing_upstream() -> httpx.MockTransport:
    """Fake upstream that refuses every connection."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


# ===== Cassette Fixtures =====


def make_interaction(
    method: str = "GET",
    url: str = "http://example.test/a",
    body: str = "",
    status: str = "200 OK",
    code: int = 200,
    response_body: str = "ok",
    seq: int = 0,
    form=None,
) -> Interaction:
    return Interaction(
        sequence=seq,
        recorded_at=datetime(2024, 1, 15, 10, 30, seq % 60),
        duration_ms=12.5,
        request=RecordedRequest(
            method=method,
            url=url,
            headers={"Host": [httpx.URL(url).host]},
            body=body,
            form=form or {},
        ),
        response=RecordedResponse(
            status=status,
            code=code,
            headers={"Content-Type": ["text/plain"], "X-Trace": ["a", "b"]},
            body=response_body,
        ),
    )


@pytest.fixture
def sample_interactions() -> List[Interaction]:
    """Three recorded interactions against two hosts."""
    return [
        make_interaction("GET", "http://example.test/a", response_body="ok", seq=0),
        make_interaction(
            "POST",
            "http://example.test/items?page=1",
            body='{"name": "widget"}',
            status="201 Created",
            code=201,
            response_body='{"id": 7}',
            seq=1,
        ),
        make_interaction(
            "GET",
            "https://api.other.test/users/1",
            status="404 Not Found",
            code=404,
            response_body="missing",
            seq=2,
        ),
    ]


@pytest.fixture
def sample_cassette(sample_interactions: List[Interaction]) -> Cassette:
    """Cassette holding the sample interactions."""
    return Cassette(
        name="sample",
        metadata=CassetteMetadata(
            created_at=datetime(2024, 1, 15, 10, 30, 0),
            tags={"suite": "unit"},
        ),
        interactions=sample_interactions,
    )


@pytest.fixture
def storage(tmp_path) -> CassetteStorage:
    """Cassette storage rooted in a temporary directory."""
    return CassetteStorage(tmp_path / "cassettes")

