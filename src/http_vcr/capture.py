"""Interaction capture — replay a request from a cassette or record it for real.

In replaying mode the cassette is asked for a matching interaction and no
network access happens. In recording mode the request is sent through a real
upstream transport, the request body is teed into a side buffer while the
upstream reads it, the raw response body is buffered, and the resulting
interaction is appended to the cassette.

Usage:
    interaction = capture(request, cassette, "recording", httpx.HTTPTransport())
    interaction = await capture_async(request, cassette, "replaying")
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import AsyncIterator, Iterator, Optional
from urllib.parse import parse_qs

import httpx

from http_vcr.core.format import (
    Cassette,
    Interaction,
    RecordedRequest,
    RecordedResponse,
    encode_body,
    headers_to_dict,
)
from http_vcr.core.mode import REPLAYING, Mode
from http_vcr.errors import CaptureError

logger = logging.getLogger(__name__)

FORM_METHODS = {"POST", "PUT", "PATCH"}
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class TeeStream(httpx.SyncByteStream):
    """Request body stream that copies every chunk read into a buffer.

    The sink is cleared each time iteration starts, so it holds the bytes of
    the last complete pass made by the reader.
    """

    def __init__(self, stream: httpx.SyncByteStream, sink: bytearray) -> None:
        self._stream = stream
        self._sink = sink
        self.completed = False

    def __iter__(self) -> Iterator[bytes]:
        self._sink.clear()
        for chunk in self._stream:
            self._sink.extend(chunk)
            yield chunk
        self.completed = True

    def close(self) -> None:
        self._stream.close()


class AsyncTeeStream(httpx.AsyncByteStream):
    """Async counterpart of TeeStream."""

    def __init__(self, stream: httpx.AsyncByteStream, sink: bytearray) -> None:
        self._stream = stream
        self._sink = sink
        self.completed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        self._sink.clear()
        async for chunk in self._stream:
            self._sink.extend(chunk)
            yield chunk
        self.completed = True

    async def aclose(self) -> None:
        await self._stream.aclose()


def duplicate_request(request: httpx.Request, body: bytes) -> httpx.Request:
    """Build an independent copy of a request from its buffered body.

    Parsing the copy leaves the original request and its stream untouched.

    Args:
        request: The outgoing request
        body: The request body, already buffered

    Returns:
        A new httpx.Request with the same method, URL, headers and body
    """
    return httpx.Request(
        request.method,
        request.url,
        headers=request.headers.copy(),
        content=body,
        extensions=dict(request.extensions),
    )


def parse_form(request: httpx.Request) -> dict[str, list[str]]:
    """Parse urlencoded form fields from a request body.

    Only POST, PUT and PATCH requests with an
    ``application/x-www-form-urlencoded`` body carry form fields; anything
    else yields an empty dict. The request body must already be read.

    Raises:
        CaptureError: If the form body is not valid UTF-8
    """
    if request.method.upper() not in FORM_METHODS:
        return {}

    content_type = request.headers.get("content-type", "")
    if content_type.split(";", 1)[0].strip().lower() != FORM_CONTENT_TYPE:
        return {}

    try:
        text = request.content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CaptureError(f"Cannot parse form body of {request.url}: {e}", request=request) from e

    return parse_qs(text, keep_blank_values=True)


def capture(
    request: httpx.Request,
    cassette: Cassette,
    mode: Mode,
    upstream: Optional[httpx.BaseTransport] = None,
) -> Interaction:
    """Replay or record one request.

    Args:
        request: The outgoing request
        cassette: Cassette to look up or append to
        mode: "replaying" or "recording"
        upstream: Real transport used when recording (a fresh
            httpx.HTTPTransport when omitted)

    Returns:
        The replayed or newly recorded Interaction

    Raises:
        InteractionNotFoundError: Replaying and nothing in the cassette matches
        CaptureError: The request or response could not be captured
        httpx.TransportError: The upstream call failed (nothing is recorded)
    """
    if mode == REPLAYING:
        interaction = cassette.find_interaction(request)
        logger.debug(f"Replaying {request.method} {request.url} (interaction {interaction.sequence})")
        return interaction

    if upstream is None:
        with httpx.HTTPTransport() as default_upstream:
            return _record(request, cassette, default_upstream)
    return _record(request, cassette, upstream)


async def capture_async(
    request: httpx.Request,
    cassette: Cassette,
    mode: Mode,
    upstream: Optional[httpx.AsyncBaseTransport] = None,
) -> Interaction:
    """Async version of capture().

    Args:
        request: The outgoing request
        cassette: Cassette to look up or append to
        mode: "replaying" or "recording"
        upstream: Real async transport used when recording (a fresh
            httpx.AsyncHTTPTransport when omitted)

    Returns:
        The replayed or newly recorded Interaction
    """
    if mode == REPLAYING:
        # Matchers compare bodies synchronously.
        await _abuffer_body(request)
        interaction = cassette.find_interaction(request)
        logger.debug(f"Replaying {request.method} {request.url} (interaction {interaction.sequence})")
        return interaction

    if upstream is None:
        async with httpx.AsyncHTTPTransport() as default_upstream:
            return await _record_async(request, cassette, default_upstream)
    return await _record_async(request, cassette, upstream)


def _record(
    request: httpx.Request, cassette: Cassette, upstream: httpx.BaseTransport
) -> Interaction:
    body = _buffer_body(request)
    form = parse_form(duplicate_request(request, body))

    captured = bytearray()
    original_stream = request.stream
    tee: Optional[TeeStream] = None
    if body:
        tee = TeeStream(original_stream, captured)
        request.stream = tee

    recorded_at = datetime.now()
    started = time.perf_counter()
    try:
        response = upstream.handle_request(request)
    except httpx.HTTPError as e:
        logger.error(f"Upstream request {request.method} {request.url} failed: {e}")
        raise
    finally:
        request.stream = original_stream

    try:
        raw = b"".join(response.stream)
    except httpx.StreamError as e:
        raise CaptureError(f"Cannot read response body from {request.url}: {e}", request=request) from e
    finally:
        response.close()

    duration_ms = (time.perf_counter() - started) * 1000.0
    interaction = _build_interaction(
        request, _sent_body(tee, captured, body), form, response, raw, recorded_at, duration_ms
    )
    return _store(cassette, interaction)


async def _record_async(
    request: httpx.Request, cassette: Cassette, upstream: httpx.AsyncBaseTransport
) -> Interaction:
    body = await _abuffer_body(request)
    form = parse_form(duplicate_request(request, body))

    captured = bytearray()
    original_stream = request.stream
    tee: Optional[AsyncTeeStream] = None
    if body:
        tee = AsyncTeeStream(original_stream, captured)
        request.stream = tee

    recorded_at = datetime.now()
    started = time.perf_counter()
    try:
        response = await upstream.handle_async_request(request)
    except httpx.HTTPError as e:
        logger.error(f"Upstream request {request.method} {request.url} failed: {e}")
        raise
    finally:
        request.stream = original_stream

    try:
        chunks = [chunk async for chunk in response.stream]
    except httpx.StreamError as e:
        raise CaptureError(f"Cannot read response body from {request.url}: {e}", request=request) from e
    finally:
        await response.aclose()

    duration_ms = (time.perf_counter() - started) * 1000.0
    interaction = _build_interaction(
        request,
        _sent_body(tee, captured, body),
        form,
        response,
        b"".join(chunks),
        recorded_at,
        duration_ms,
    )
    return _store(cassette, interaction)


def _buffer_body(request: httpx.Request) -> bytes:
    try:
        return request.read()
    except httpx.StreamError as e:
        raise CaptureError(f"Cannot read request body for {request.url}: {e}", request=request) from e


async def _abuffer_body(request: httpx.Request) -> bytes:
    try:
        return await request.aread()
    except httpx.StreamError as e:
        raise CaptureError(f"Cannot read request body for {request.url}: {e}", request=request) from e


def _sent_body(
    tee: Optional[TeeStream | AsyncTeeStream], captured: bytearray, body: bytes
) -> bytes:
    # Upstreams that consume the buffered content directly never iterate the tee.
    if tee is not None and tee.completed:
        return bytes(captured)
    return body


def _build_interaction(
    request: httpx.Request,
    request_body: bytes,
    form: dict[str, list[str]],
    response: httpx.Response,
    response_body: bytes,
    recorded_at: datetime,
    duration_ms: float,
) -> Interaction:
    req_text, req_encoding = encode_body(request_body)
    resp_text, resp_encoding = encode_body(response_body)
    return Interaction(
        recorded_at=recorded_at,
        duration_ms=duration_ms,
        request=RecordedRequest(
            method=request.method,
            url=str(request.url),
            headers=headers_to_dict(request.headers),
            body=req_text,
            body_encoding=req_encoding,
            form=form,
        ),
        response=RecordedResponse(
            status=f"{response.status_code} {response.reason_phrase}".rstrip(),
            code=response.status_code,
            http_version=response.http_version,
            headers=headers_to_dict(response.headers),
            body=resp_text,
            body_encoding=resp_encoding,
        ),
    )


def _store(cassette: Cassette, interaction: Interaction) -> Interaction:
    stored = cassette.add_interaction(interaction)
    logger.debug(
        f"Recorded {stored.request.method} {stored.request.url} -> {stored.response.code} "
        f"(interaction {stored.sequence}, {stored.duration_ms:.1f}ms)"
    )
    return stored


__all__ = [
    "TeeStream",
    "AsyncTeeStream",
    "duplicate_request",
    "parse_form",
    "capture",
    "capture_async",
]
