"""Recorder — the main entry point for recording and replaying HTTP traffic.

A Recorder owns one cassette. When the cassette is not stored yet, the
recorder starts in recording mode: requests made through its transports go
to the real destination and are captured. When the cassette already exists,
it is loaded and the recorder replays it without touching the network. The
mode is decided once, at construction.

Usage:
    with Recorder("github_user", cassette_dir="tests/cassettes") as recorder:
        with recorder.client() as client:
            response = client.get("https://api.github.com/users/octocat")

    # Or explicitly:
    recorder = Recorder("github_user")
    client = httpx.Client(transport=recorder.transport)
    ...
    recorder.stop()  # saves the cassette when recording
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from http_vcr.config import VCRSettings
from http_vcr.core.format import Cassette
from http_vcr.core.matcher import MatchStrategy, RequestMatcher
from http_vcr.core.mode import RECORDING, REPLAYING, Mode, resolve_mode
from http_vcr.core.storage import CassetteStorage
from http_vcr.transport.aio import AsyncVCRTransport
from http_vcr.transport.sync import VCRTransport

logger = logging.getLogger(__name__)


class Recorder:
    """Records HTTP interactions to a cassette, or replays them from it.

    Attributes:
        name: Cassette name (storage key)
        storage: CassetteStorage the cassette is loaded from and saved to
    """

    def __init__(
        self,
        name: str,
        cassette_dir: str | Path = ".",
        *,
        match_strategy: MatchStrategy = "method_and_url",
        storage: Optional[CassetteStorage] = None,
        upstream: Optional[httpx.BaseTransport] = None,
        async_upstream: Optional[httpx.AsyncBaseTransport] = None,
        tags: Optional[dict[str, str]] = None,
        record: bool = False,
    ) -> None:
        """Create or load the cassette and fix the mode.

        Args:
            name: Cassette name, mapped to ``<cassette_dir>/<name>.json``
            cassette_dir: Directory for cassette files (ignored if storage given)
            match_strategy: Request matching strategy used when replaying
            storage: Custom cassette storage
            upstream: Real transport for recording with the sync transport
            async_upstream: Real transport for recording with the async transport
            tags: Tags written into a newly created cassette
            record: Record even if the cassette exists; new interactions are
                appended to the stored ones

        Raises:
            CassetteLoadError: If a stored cassette exists but cannot be loaded
            ValueError: If match_strategy is invalid
        """
        self.name = name
        self.storage = storage or CassetteStorage(cassette_dir)
        matcher = RequestMatcher(strategy=match_strategy)

        exists = self.storage.exists(name)
        self._mode: Mode = RECORDING if record else resolve_mode(exists)
        if exists:
            self._cassette = self.storage.load(name)
        else:
            self._cassette = self.storage.create_empty(name, tags=tags)
        self._cassette.matcher = matcher

        self._transport = VCRTransport(self._cassette, self._mode, upstream=upstream)
        self._async_upstream = async_upstream
        self._async_transport: Optional[AsyncVCRTransport] = None

        logger.info(
            f"Recorder for cassette '{name}' initialized in {self._mode} mode "
            f"({self.storage.path_for(name)})"
        )

    @classmethod
    def from_settings(cls, name: str, settings: VCRSettings, **kwargs: Any) -> Recorder:
        """Create a recorder configured from VCRSettings.

        Args:
            name: Cassette name
            settings: Settings providing directory, suffix, strategy and tags
            **kwargs: Constructor arguments; these win over the settings
        """
        if "storage" not in kwargs:
            directory = kwargs.pop("cassette_dir", settings.cassette_dir)
            kwargs["storage"] = CassetteStorage(directory, suffix=settings.suffix)
        kwargs.setdefault("match_strategy", settings.match_strategy)
        kwargs.setdefault("tags", settings.tags)
        return cls(name, **kwargs)

    @property
    def mode(self) -> Mode:
        """Return the recorder mode. Never changes after construction."""
        return self._mode

    @property
    def is_recording(self) -> bool:
        return self._mode == RECORDING

    @property
    def is_replaying(self) -> bool:
        return self._mode == REPLAYING

    @property
    def cassette(self) -> Cassette:
        """Return the cassette being recorded or replayed."""
        return self._cassette

    @property
    def transport(self) -> VCRTransport:
        """Return the transport to install into an ``httpx.Client``."""
        return self._transport

    @property
    def async_transport(self) -> AsyncVCRTransport:
        """Return the transport to install into an ``httpx.AsyncClient``.

        Built on first use, so a recorder only used synchronously never opens
        an async upstream.
        """
        if self._async_transport is None:
            self._async_transport = AsyncVCRTransport(
                self._cassette, self._mode, upstream=self._async_upstream
            )
        return self._async_transport

    def client(self, **kwargs: Any) -> httpx.Client:
        """Build an ``httpx.Client`` that uses this recorder's transport."""
        return httpx.Client(transport=self._transport, **kwargs)

    def async_client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Build an ``httpx.AsyncClient`` that uses this recorder's async transport."""
        return httpx.AsyncClient(transport=self.async_transport, **kwargs)

    def stop(self) -> Optional[Path]:
        """Stop the recorder and persist what was recorded.

        In recording mode the cassette is saved under its name, even if no
        interaction was captured. In replaying mode nothing is written.

        Returns:
            Path the cassette was saved to, or None when replaying

        Raises:
            CassetteSaveError: If the cassette cannot be written. The
                interactions stay in memory and stop() can be retried.
        """
        if self._mode != RECORDING:
            logger.debug(f"Recorder for '{self.name}' stopped (replaying, nothing to save)")
            return None

        path = self.storage.save(self._cassette)
        logger.info(
            f"Recorder for '{self.name}' stopped, "
            f"{self._cassette.interaction_count} interactions saved"
        )
        return path

    def close(self) -> None:
        """Close the upstream transports owned by this recorder."""
        self._transport.close()

    async def aclose(self) -> None:
        """Close the async upstream transport owned by this recorder."""
        if self._async_transport is not None:
            await self._async_transport.aclose()

    def __enter__(self) -> Recorder:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        try:
            self.stop()
        finally:
            self.close()

    async def __aenter__(self) -> Recorder:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        try:
            self.stop()
        finally:
            self.close()
            await self.aclose()

    def __repr__(self) -> str:
        return (
            f"Recorder(name={self.name!r}, mode={self._mode!r}, "
            f"interactions={self._cassette.interaction_count})"
        )


__all__ = ["Recorder"]
