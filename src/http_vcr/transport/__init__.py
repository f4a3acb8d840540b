"""httpx transports that record and replay HTTP interactions."""

from http_vcr.transport.aio import AsyncVCRTransport
from http_vcr.transport.base import VCRTransportBase, synthesize_response
from http_vcr.transport.sync import VCRTransport

__all__ = [
    "VCRTransportBase",
    "VCRTransport",
    "AsyncVCRTransport",
    "synthesize_response",
]
