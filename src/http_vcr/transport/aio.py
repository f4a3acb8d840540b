"""Async VCR transport for ``httpx.AsyncClient``.

Usage:
    transport = AsyncVCRTransport(cassette, mode="replaying")
    async with httpx.AsyncClient(transport=transport) as client:
        await client.get("https://example.com/")
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from http_vcr.capture import capture_async
from http_vcr.core.format import Cassette
from http_vcr.core.mode import RECORDING, Mode
from http_vcr.errors import RoundTripError

from .base import VCRTransportBase, synthesize_response

logger = logging.getLogger(__name__)


class AsyncVCRTransport(VCRTransportBase, httpx.AsyncBaseTransport):
    """Async httpx transport that records to or replays from a cassette.

    The round trip runs inside the caller's task. Cassette appends are
    locked, so concurrent requests from one client are safe to record;
    they are appended in the order they complete.
    """

    def __init__(
        self,
        cassette: Cassette,
        mode: Mode,
        upstream: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the transport.

        Args:
            cassette: Cassette to record to or replay from
            mode: "recording" or "replaying"
            upstream: Real async transport for recording mode

        Raises:
            ValueError: If mode is not a known mode
        """
        super().__init__(cassette, mode)
        self._owns_upstream = upstream is None and self._mode == RECORDING
        if self._owns_upstream:
            upstream = httpx.AsyncHTTPTransport()
        self._upstream = upstream

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Perform one round trip.

        Raises:
            InteractionNotFoundError: Replaying and the cassette has no match
            CaptureError: The exchange could not be captured
            httpx.TransportError: The upstream call failed
        """
        try:
            interaction = await capture_async(
                request, self._cassette, self._mode, self._upstream
            )
        except RoundTripError as e:
            logger.error(f"Round trip for {request.method} {request.url} failed: {e}")
            raise
        return synthesize_response(interaction, request)

    async def aclose(self) -> None:
        if self._owns_upstream and self._upstream is not None:
            await self._upstream.aclose()
