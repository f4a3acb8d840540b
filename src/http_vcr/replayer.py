"""CassetteServer — serve a recorded cassette as a mock HTTP server.

The server answers every incoming request with the recorded response of the
matching interaction, so tools that cannot take an httpx transport (other
languages, browsers, curl) can still run against recorded traffic. By
default requests are matched on method, path and query, ignoring the
recorded host.

Usage:
    server = CassetteServer.from_file("cassettes/github_user.json")
    await server.serve(host="127.0.0.1", port=8100)

    # Or mount the aiohttp application yourself:
    app = server.build_app()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx
from aiohttp import web

from http_vcr.core.format import Cassette, Interaction
from http_vcr.core.matcher import MatchStrategy, RequestMatcher
from http_vcr.errors import InteractionNotFoundError

logger = logging.getLogger(__name__)

# Framing headers are recomputed by aiohttp for the body being sent.
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "transfer-encoding",
    "content-length",
    "upgrade",
}


class CassetteServer:
    """Mock HTTP server backed by a cassette.

    Attributes:
        cassette: The Cassette to serve
        match_strategy: Matching strategy for requests ("path", "method_and_url", ...)
    """

    def __init__(self, cassette: Cassette, match_strategy: MatchStrategy = "path") -> None:
        """Initialize the server.

        Args:
            cassette: Cassette to serve
            match_strategy: Request matching strategy (see RequestMatcher)

        Raises:
            ValueError: If match_strategy is invalid
        """
        self.cassette = cassette
        self.match_strategy = match_strategy
        self.cassette.matcher = RequestMatcher(strategy=match_strategy)

        logger.info(
            f"CassetteServer initialized with {cassette.interaction_count} "
            f"interactions (strategy={match_strategy})"
        )

    @classmethod
    def from_file(cls, path: str | Path, match_strategy: MatchStrategy = "path") -> CassetteServer:
        """Load a cassette file and build a server for it.

        Raises:
            FileNotFoundError: If file does not exist
            ValueError: If file is not a valid cassette
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Cassette file not found: {path}")

        cassette = Cassette.load(str(path))
        return cls(cassette, match_strategy=match_strategy)

    def build_app(self) -> web.Application:
        """Build the aiohttp application that answers from the cassette."""
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._handle)
        return app

    async def serve(self, host: str = "127.0.0.1", port: int = 8100) -> None:
        """Serve until cancelled.

        Args:
            host: Server host
            port: Server port
        """
        runner = web.AppRunner(self.build_app())
        await runner.setup()
        site = web.TCPSite(runner, host, port)
        await site.start()

        logger.info(f"Cassette server listening on http://{host}:{port}")

        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()

    def find_interaction(
        self,
        method: str,
        url: str,
        body: bytes = b"",
        headers: Optional[dict[str, str]] = None,
    ) -> Interaction:
        """Look up the recorded interaction for an incoming request.

        Raises:
            InteractionNotFoundError: If nothing matches
        """
        request = httpx.Request(method, url, headers=headers, content=body)
        return self.cassette.find_interaction(request)

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        try:
            interaction = self.find_interaction(
                request.method, str(request.url), body, dict(request.headers)
            )
        except InteractionNotFoundError as e:
            logger.error(str(e))
            return web.json_response(
                {"error": "no_recorded_interaction", "message": str(e)},
                status=404,
            )

        recorded = interaction.response
        headers = [
            (name, value)
            for name, values in recorded.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
            for value in values
        ]
        response = web.Response(
            status=recorded.code,
            reason=recorded.reason_phrase or None,
            headers=headers,
            body=recorded.content,
        )

        logger.debug(
            f"Served {request.method} {request.rel_url} from interaction {interaction.sequence}"
        )
        return response


__all__ = ["CassetteServer"]
