"""Shared pieces of the sync and async VCR transports."""
from __future__ import annotations

import logging

import httpx

from http_vcr.core.format import Cassette, Interaction, headers_from_dict
from http_vcr.core.mode import RECORDING, REPLAYING, Mode, validate_mode

logger = logging.getLogger(__name__)

# Replayed and recorded responses are both rebuilt from the cassette, so they
# report a fixed protocol version rather than whatever the upstream used.
SYNTHESIZED_HTTP_VERSION = b"HTTP/1.0"


def synthesize_response(interaction: Interaction, request: httpx.Request) -> httpx.Response:
    """Build the response handed back to the client from a recorded interaction.

    Args:
        interaction: Interaction to turn into a response
        request: The request being answered

    Returns:
        httpx.Response with the recorded status, headers and body
    """
    recorded = interaction.response
    body = recorded.content

    headers = headers_from_dict(recorded.headers)
    for name in ("Content-Length", "Transfer-Encoding"):
        if name in headers:
            del headers[name]
    headers["Content-Length"] = str(len(body))

    return httpx.Response(
        status_code=recorded.code,
        headers=headers,
        stream=httpx.ByteStream(body),
        request=request,
        extensions={
            "http_version": SYNTHESIZED_HTTP_VERSION,
            "reason_phrase": recorded.reason_phrase.encode("ascii", errors="ignore"),
        },
    )


class VCRTransportBase:
    """State shared by VCRTransport and AsyncVCRTransport.

    Holds the cassette and the mode, both fixed at construction. Holds no
    per-request state, so one instance serves any number of requests.
    """

    def __init__(self, cassette: Cassette, mode: Mode) -> None:
        self._cassette = cassette
        self._mode = validate_mode(mode)

    @property
    def cassette(self) -> Cassette:
        """Return the cassette requests are recorded to or replayed from."""
        return self._cassette

    @property
    def mode(self) -> Mode:
        """Return the transport mode ("recording" or "replaying")."""
        return self._mode

    @property
    def is_recording(self) -> bool:
        return self._mode == RECORDING

    @property
    def is_replaying(self) -> bool:
        return self._mode == REPLAYING

    def cancel_request(self, request: httpx.Request) -> None:
        """Accept a cancellation request and ignore it.

        Round trips complete before handle_request returns, so there is
        never anything in flight to cancel.
        """
        logger.debug(f"Ignoring cancellation of {request.method} {request.url}")
