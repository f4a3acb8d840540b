"""Blocking VCR transport for ``httpx.Client``.

Usage:
    transport = VCRTransport(cassette, mode="recording")
    with httpx.Client(transport=transport) as client:
        client.get("https://example.com/")
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from http_vcr.capture import capture
from http_vcr.core.format import Cassette
from http_vcr.core.mode import RECORDING, Mode
from http_vcr.errors import RoundTripError

from .base import VCRTransportBase, synthesize_response

logger = logging.getLogger(__name__)


class VCRTransport(VCRTransportBase, httpx.BaseTransport):
    """httpx transport that records to or replays from a cassette.

    In recording mode requests go to the upstream transport (a pooled
    httpx.HTTPTransport unless one is given) and are appended to the
    cassette. In replaying mode the upstream is never used.
    """

    def __init__(
        self,
        cassette: Cassette,
        mode: Mode,
        upstream: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the transport.

        Args:
            cassette: Cassette to record to or replay from
            mode: "recording" or "replaying"
            upstream: Real transport for recording mode

        Raises:
            ValueError: If mode is not a known mode
        """
        super().__init__(cassette, mode)
        self._owns_upstream = upstream is None and self._mode == RECORDING
        if self._owns_upstream:
            upstream = httpx.HTTPTransport()
        self._upstream = upstream

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Perform one round trip.

        Raises:
            InteractionNotFoundError: Replaying and the cassette has no match
            CaptureError: The exchange could not be captured
            httpx.TransportError: The upstream call failed
        """
        try:
            interaction = capture(request, self._cassette, self._mode, self._upstream)
        except RoundTripError as e:
            logger.error(f"Round trip for {request.method} {request.url} failed: {e}")
            raise
        return synthesize_response(interaction, request)

    def close(self) -> None:
        if self._owns_upstream and self._upstream is not None:
            self._upstream.close()
