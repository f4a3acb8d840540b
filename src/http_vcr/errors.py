"""Exceptions raised by HTTP VCR.

Per-request failures (lookup misses, capture failures) derive from
``httpx.TransportError`` so an ``httpx`` client treats them like any other
transport-level failure such as a refused connection.
"""

from __future__ import annotations

import httpx


class VCRError(Exception):
    """Base class for all HTTP VCR errors."""


class CassetteError(VCRError):
    """A cassette could not be read from or written to storage."""


class CassetteLoadError(CassetteError):
    """Stored cassette exists but could not be loaded or parsed."""


class CassetteSaveError(CassetteError):
    """Cassette could not be persisted. In-memory interactions are kept."""


class RoundTripError(VCRError, httpx.TransportError):
    """A single round trip through the VCR transport failed."""


class InteractionNotFoundError(RoundTripError):
    """No recorded interaction matches the request being replayed."""


class CaptureError(RoundTripError):
    """The request could not be duplicated or the response body could not be read."""


__all__ = [
    "VCRError",
    "CassetteError",
    "CassetteLoadError",
    "CassetteSaveError",
    "RoundTripError",
    "InteractionNotFoundError",
    "CaptureError",
]
