"""Core data models and utilities for HTTP VCR."""

from http_vcr.core.format import (
    Cassette,
    CassetteMetadata,
    Interaction,
    RecordedRequest,
    RecordedResponse,
)
from http_vcr.core.matcher import RequestMatcher
from http_vcr.core.mode import Mode
from http_vcr.core.storage import CassetteStorage

__all__ = [
    "Cassette",
    "CassetteMetadata",
    "Interaction",
    "RecordedRequest",
    "RecordedResponse",
    "RequestMatcher",
    "Mode",
    "CassetteStorage",
]
