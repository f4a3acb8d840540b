"""Tests for interaction capture (record and replay of single requests)."""

from typing import Iterator, List

import httpx
import pytest

from http_vcr.capture import (
    AsyncTeeStream,
    TeeStream,
    capture,
    capture_async,
    duplicate_request,
    parse_form,
)
from http_vcr.core.format import Cassette
from http_vcr.errors import CaptureError, InteractionNotFoundError


# ===== Helpers =====


class StreamingUpstream(httpx.BaseTransport):
    """Upstream that reads the request body chunk by chunk, like a real connection."""

    def __init__(self) -> None:
        self.received: List[bytes] = []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.received.append(b"".join(request.stream))
        return httpx.Response(200, content=b"streamed")


class AsyncStreamingUpstream(httpx.AsyncBaseTransport):
    """Async upstream that iterates the request stream."""

    def __init__(self) -> None:
        self.received: List[bytes] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        chunks = [chunk async for chunk in request.stream]
        self.received.append(b"".join(chunks))
        return httpx.Response(200, content=b"streamed")


class ChunkedResponseUpstream(httpx.BaseTransport):
    """Upstream whose response body arrives in several chunks."""

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        def body() -> Iterator[bytes]:
            yield b"chunk-1;"
            yield b"chunk-2;"
            yield b"chunk-3"

        return httpx.Response(200, content=body())


class TestRecordScenario:
    """GET http://example.test/a against an upstream answering 200 "ok"."""

    def test_single_interaction(self, ok_upstream):
        cassette = Cassette(name="scenario")

        interaction = capture(
            httpx.Request("GET", "http://example.test/a"), cassette, "recording", ok_upstream
        )

        assert cassette.interaction_count == 1
        assert interaction is cassette.interactions[0]
        assert interaction.request.method == "GET"
        assert interaction.request.url == "http://example.test/a"
        assert interaction.request.content == b""
        assert interaction.response.code == 200
        assert interaction.response.status == "200 OK"
        assert interaction.response.content == b"ok"
        assert interaction.response.headers["Content-Type"] == ["text/plain"]

    def test_timing_recorded(self, ok_upstream):
        cassette = Cassette(name="timing")
        interaction = capture(
            httpx.Request("GET", "http://example.test/a"), cassette, "recording", ok_upstream
        )
        assert interaction.duration_ms >= 0.0
        assert interaction.recorded_at is not None

    def test_identical_requests_recorded_separately(self, ok_upstream):
        """Every round trip becomes its own interaction, in completion order."""
        cassette = Cassette(name="twice")
        for _ in range(2):
            capture(httpx.Request("GET", "http://example.test/a"), cassette, "recording", ok_upstream)

        assert [i.sequence for i in cassette.interactions] == [0, 1]

    def test_request_headers_recorded(self, ok_upstream):
        cassette = Cassette(name="headers")
        request = httpx.Request(
            "GET", "http://example.test/a", headers={"Authorization": "Bearer t"}
        )
        interaction = capture(request, cassette, "recording", ok_upstream)
        assert interaction.request.headers["Authorization"] == ["Bearer t"]

    def test_response_body_read_in_full(self):
        cassette = Cassette(name="chunks")
        interaction = capture(
            httpx.Request("GET", "http://example.test/big"),
            cassette,
            "recording",
            ChunkedResponseUpstream(),
        )
        assert interaction.response.content == b"chunk-1;chunk-2;chunk-3"

    def test_binary_response_body(self):
        """Bodies that are not UTF-8 are recorded byte-exact."""
        payload = b"\x1f\x8b\x08\x00\x00\xff"
        upstream = httpx.MockTransport(
            lambda request: httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(payload),
            )
        )
        cassette = Cassette(name="binary")

        interaction = capture(
            httpx.Request("GET", "http://example.test/gz"), cassette, "recording", upstream
        )

        assert interaction.response.body_encoding == "base64"
        assert interaction.response.content == payload


class TestRequestBodyCapture:
    """Tests for capturing the request body as sent."""

    def test_empty_body(self, ok_upstream):
        """A request without a body records an empty capture."""
        cassette = Cassette(name="empty")
        interaction = capture(
            httpx.Request("POST", "http://example.test/a"), cassette, "recording", ok_upstream
        )
        assert interaction.request.body == ""

    def test_body_from_buffered_upstream(self, echo_upstream):
        """Upstreams that read the buffered content still see and record the body."""
        cassette = Cassette(name="echo")
        request = httpx.Request("POST", "http://example.test/items", content=b'{"a": 1}')

        interaction = capture(request, cassette, "recording", echo_upstream)

        assert interaction.request.content == b'{"a": 1}'
        assert b'{\\"a\\": 1}' in interaction.response.content

    def test_body_teed_from_streaming_upstream(self):
        """Bytes pulled through the request stream are copied into the capture."""
        upstream = StreamingUpstream()
        cassette = Cassette(name="tee")
        request = httpx.Request(
            "PUT", "http://example.test/doc", content=iter([b"part-1,", b"part-2"])
        )

        interaction = capture(request, cassette, "recording", upstream)

        assert upstream.received == [b"part-1,part-2"]
        assert interaction.request.content == b"part-1,part-2"

    def test_original_stream_restored(self):
        """The request keeps a replayable stream after the round trip."""
        upstream = StreamingUpstream()
        request = httpx.Request("PUT", "http://example.test/doc", content=b"payload")

        capture(request, Cassette(name="restore"), "recording", upstream)

        assert not isinstance(request.stream, TeeStream)
        assert b"".join(request.stream) == b"payload"


class TestTeeStream:
    """Tests for the request body tee."""

    def test_copies_chunks(self):
        sink = bytearray()
        tee = TeeStream(httpx.ByteStream(b"abc"), sink)

        assert b"".join(tee) == b"abc"
        assert bytes(sink) == b"abc"
        assert tee.completed

    def test_second_pass_does_not_duplicate(self):
        """Re-reading the stream replaces the previous capture."""
        sink = bytearray()
        tee = TeeStream(httpx.ByteStream(b"abc"), sink)
        list(tee)
        list(tee)
        assert bytes(sink) == b"abc"

    def test_not_completed_until_exhausted(self):
        sink = bytearray()
        tee = TeeStream(httpx.ByteStream(b"abc"), sink)
        assert not tee.completed

    @pytest.mark.asyncio
    async def test_async_copies_chunks(self):
        sink = bytearray()
        tee = AsyncTeeStream(httpx.ByteStream(b"xyz"), sink)

        chunks = [chunk async for chunk in tee]

        assert b"".join(chunks) == b"xyz"
        assert bytes(sink) == b"xyz"
        assert tee.completed


class TestFormParsing:
    """Tests for urlencoded form capture."""

    def test_form_recorded(self, ok_upstream):
        cassette = Cassette(name="form")
        request = httpx.Request(
            "POST", "http://example.test/login", data={"user": "ann", "tag": ["a", "b"]}
        )

        interaction = capture(request, cassette, "recording", ok_upstream)

        assert interaction.request.form == {"user": ["ann"], "tag": ["a", "b"]}

    def test_blank_values_kept(self):
        request = httpx.Request(
            "POST",
            "http://example.test/login",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            content=b"user=&remember=1",
        )
        request.read()
        assert parse_form(request) == {"user": [""], "remember": ["1"]}

    def test_get_has_no_form(self):
        request = httpx.Request("GET", "http://example.test/?user=ann")
        assert parse_form(request) == {}

    def test_json_body_has_no_form(self):
        request = httpx.Request("POST", "http://example.test/", json={"user": "ann"})
        assert parse_form(request) == {}

    def test_content_type_parameters_ignored(self):
        request = httpx.Request(
            "PATCH",
            "http://example.test/",
            headers={"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"},
            content=b"a=1",
        )
        request.read()
        assert parse_form(request) == {"a": ["1"]}

    def test_invalid_utf8_form(self):
        request = httpx.Request(
            "POST",
            "http://example.test/",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            content=b"a=\xff\xfe",
        )
        request.read()
        with pytest.raises(CaptureError):
            parse_form(request)

    def test_duplicate_leaves_original_untouched(self):
        """Parsing a duplicate does not consume the original request body."""
        request = httpx.Request("POST", "http://example.test/login", data={"user": "ann"})
        body = request.read()

        copy = duplicate_request(request, body)
        parse_form(copy)

        assert copy is not request
        assert copy.headers == request.headers
        assert request.content == b"user=ann"
        assert b"".join(request.stream) == b"user=ann"


class TestUpstreamFailure:
    """Tests for failed upstream round trips."""

    def test_failure_records_nothing(self, failing_upstream):
        """An upstream error propagates and leaves the cassette unchanged."""
        cassette = Cassette(name="failing")

        with pytest.raises(httpx.ConnectError):
            capture(
                httpx.Request("GET", "http://example.test/a"),
                cassette,
                "recording",
                failing_upstream,
            )

        assert cassette.interaction_count == 0

    def test_stream_restored_after_failure(self, failing_upstream):
        request = httpx.Request("POST", "http://example.test/a", content=b"data")
        with pytest.raises(httpx.ConnectError):
            capture(request, Cassette(name="failing"), "recording", failing_upstream)
        assert not isinstance(request.stream, TeeStream)


class TestReplay:
    """Tests for capture in replaying mode."""

    def test_replay_returns_recorded(self, sample_cassette):
        interaction = capture(
            httpx.Request("GET", "http://example.test/a"), sample_cassette, "replaying"
        )
        assert interaction.response.content == b"ok"
        assert sample_cassette.interaction_count == 3

    def test_replay_miss(self, sample_cassette):
        with pytest.raises(InteractionNotFoundError):
            capture(
                httpx.Request("GET", "http://example.test/unknown"), sample_cassette, "replaying"
            )

    def test_replay_never_uses_upstream(self, sample_cassette, failing_upstream):
        interaction = capture(
            httpx.Request("GET", "http://example.test/a"),
            sample_cassette,
            "replaying",
            failing_upstream,
        )
        assert interaction.sequence == 0


class TestAsyncCapture:
    """Tests for capture_async."""

    @pytest.mark.asyncio
    async def test_record_scenario(self, ok_upstream):
        cassette = Cassette(name="async")

        interaction = await capture_async(
            httpx.Request("GET", "http://example.test/a"), cassette, "recording", ok_upstream
        )

        assert cassette.interaction_count == 1
        assert interaction.response.code == 200
        assert interaction.response.content == b"ok"

    @pytest.mark.asyncio
    async def test_body_teed_from_streaming_upstream(self):
        upstream = AsyncStreamingUpstream()
        cassette = Cassette(name="async-tee")
        request = httpx.Request("POST", "http://example.test/doc", content=b"async-body")

        interaction = await capture_async(request, cassette, "recording", upstream)

        assert upstream.received == [b"async-body"]
        assert interaction.request.content == b"async-body"

    @pytest.mark.asyncio
    async def test_failure_records_nothing(self, failing_upstream):
        cassette = Cassette(name="async-failing")
        with pytest.raises(httpx.ConnectError):
            await capture_async(
                httpx.Request("GET", "http://example.test/a"),
                cassette,
                "recording",
                failing_upstream,
            )
        assert cassette.interaction_count == 0

    @pytest.mark.asyncio
    async def test_replay_with_body_strategy(self, sample_cassette):
        """Replay buffers the async request body before matching on it."""
        from http_vcr.core.matcher import RequestMatcher

        sample_cassette.matcher = RequestMatcher(strategy="method_url_body")

        async def body():
            yield b'{"name": '
            yield b'"widget"}'

        request = httpx.Request("POST", "http://example.test/items?page=1", content=body())
        interaction = await capture_async(request, sample_cassette, "replaying")

        assert interaction.response.code == 201
