"""HTTP VCR — Record and replay HTTP interactions through httpx transports."""

__version__ = "0.1.0"

from http_vcr.core.format import Cassette, Interaction, RecordedRequest, RecordedResponse
from http_vcr.core.storage import CassetteStorage
from http_vcr.errors import (
    CaptureError,
    CassetteLoadError,
    CassetteSaveError,
    InteractionNotFoundError,
    VCRError,
)
from http_vcr.recorder import Recorder
from http_vcr.transport import AsyncVCRTransport, VCRTransport

__all__ = [
    "Cassette",
    "Interaction",
    "RecordedRequest",
    "RecordedResponse",
    "CassetteStorage",
    "Recorder",
    "VCRTransport",
    "AsyncVCRTransport",
    "VCRError",
    "CassetteLoadError",
    "CassetteSaveError",
    "InteractionNotFoundError",
    "CaptureError",
]
