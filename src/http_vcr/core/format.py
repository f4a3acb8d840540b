"""Cassette format — Pydantic models for recorded HTTP interactions.

A cassette captures an ordered list of HTTP exchanges:
- Cassette metadata (format version, creation time, tags)
- Each interaction's request (method, URL, headers, body, form fields)
- Each interaction's response (status line, code, headers, body)
- Timing information for each interaction

Bodies are stored as text. Bodies that are not valid UTF-8 are stored
base64-encoded so the recorded bytes come back exactly.
"""

from __future__ import annotations

import base64
import json
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Literal, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from http_vcr.errors import InteractionNotFoundError

if TYPE_CHECKING:
    from http_vcr.core.matcher import RequestMatcher


FORMAT_VERSION = "1.0.0"

BodyEncoding = Literal["utf-8", "base64"]
HeaderMap = Dict[str, List[str]]


def encode_body(data: bytes) -> Tuple[str, BodyEncoding]:
    """Encode raw body bytes for storage.

    Args:
        data: Body bytes

    Returns:
        (text, encoding): UTF-8 text when possible, base64 otherwise
    """
    try:
        return data.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return base64.b64encode(data).decode("ascii"), "base64"


def headers_to_dict(headers: httpx.Headers) -> HeaderMap:
    """Convert httpx headers to a multi-valued dict, keeping original case."""
    result: HeaderMap = {}
    for key, value in headers.raw:
        name = key.decode(headers.encoding)
        result.setdefault(name, []).append(value.decode(headers.encoding))
    return result


def headers_from_dict(headers: HeaderMap) -> httpx.Headers:
    """Convert a stored multi-valued header dict back to httpx headers."""
    return httpx.Headers(
        [(name, value) for name, values in headers.items() for value in values]
    )


class RecordedMessage(BaseModel):
    """Fields shared by recorded requests and responses."""

    model_config = ConfigDict(frozen=True)

    headers: HeaderMap = Field(
        default_factory=dict, description="Headers, name -> list of values"
    )
    body: str = Field("", description="Body text (UTF-8 or base64, see body_encoding)")
    body_encoding: BodyEncoding = Field(
        "utf-8", description="How the body text is encoded"
    )

    @property
    def content(self) -> bytes:
        """Return the body as the original bytes."""
        if self.body_encoding == "base64":
            return base64.b64decode(self.body)
        return self.body.encode("utf-8")


class RecordedRequest(RecordedMessage):
    """The request half of an interaction."""

    method: str = Field(description="HTTP method, e.g. GET")
    url: str = Field(description="Absolute request URL")
    form: Dict[str, List[str]] = Field(
        default_factory=dict, description="Parsed urlencoded form fields"
    )


class RecordedResponse(RecordedMessage):
    """The response half of an interaction."""

    status: str = Field(description="Status line without protocol, e.g. '200 OK'")
    code: int = Field(description="Numeric status code")
    http_version: str = Field(
        "HTTP/1.1", description="Protocol version reported by the upstream server"
    )

    @property
    def reason_phrase(self) -> str:
        """Return the reason phrase part of the status line."""
        code, _, reason = self.status.partition(" ")
        if code == str(self.code):
            return reason
        return self.status


class Interaction(BaseModel):
    """Single recorded request/response exchange. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(0, description="Position in the cassette starting from 0")
    recorded_at: datetime = Field(description="When this interaction was captured")
    duration_ms: float = Field(
        0.0, description="Milliseconds spent on the upstream round trip"
    )
    request: RecordedRequest = Field(description="The recorded request")
    response: RecordedResponse = Field(description="The recorded response")


class CassetteMetadata(BaseModel):
    """Metadata about a cassette."""

    format_version: str = Field(FORMAT_VERSION, description="Cassette format version")
    created_at: datetime = Field(
        default_factory=datetime.now, description="When the cassette was created"
    )
    tags: Dict[str, str] = Field(
        default_factory=dict, description="Arbitrary tags for organization"
    )


class Cassette(BaseModel):
    """Named, ordered collection of recorded interactions.

    Appends, lookups and serialization snapshots are serialized through a
    lock, so a cassette can be shared by requests issued from several
    threads. Append order is completion order, not issuance order.
    """

    name: str = Field(description="Cassette name, used as the storage key")
    metadata: CassetteMetadata = Field(default_factory=CassetteMetadata)
    interactions: List[Interaction] = Field(
        default_factory=list, description="Interactions in the order they were recorded"
    )

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)
    _matcher: Optional["RequestMatcher"] = PrivateAttr(default=None)

    @property
    def matcher(self) -> "RequestMatcher":
        """Matcher used by find_interaction (method + URL unless set)."""
        if self._matcher is None:
            from http_vcr.core.matcher import RequestMatcher

            self._matcher = RequestMatcher()
        return self._matcher

    @matcher.setter
    def matcher(self, matcher: "RequestMatcher") -> None:
        self._matcher = matcher

    def add_interaction(self, interaction: Interaction) -> Interaction:
        """Append an interaction, assigning its sequence number.

        Args:
            interaction: Interaction to append

        Returns:
            The stored interaction (with its final sequence number)
        """
        with self._lock:
            stored = interaction.model_copy(
                update={"sequence": len(self.interactions)}
            )
            self.interactions.append(stored)
        return stored

    def find_interaction(self, request: httpx.Request) -> Interaction:
        """Find the recorded interaction matching a request.

        Args:
            request: The outgoing request

        Returns:
            The first matching Interaction

        Raises:
            InteractionNotFoundError: If nothing in the cassette matches
        """
        with self._lock:
            match = self.matcher.find_match(request, self.interactions)
        if match is None:
            raise InteractionNotFoundError(
                f"No recorded interaction matching {request.method} {request.url} "
                f"in cassette '{self.name}' (strategy={self.matcher.strategy})",
                request=request,
            )
        return match

    def save(self, path: str) -> None:
        """Save the cassette to a JSON file.

        Args:
            path: File path to save to

        Raises:
            IOError: If the file cannot be written
        """
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(self.to_json())
        except (IOError, OSError) as e:
            raise IOError(f"Failed to save cassette to {path}: {e}") from e

    @classmethod
    def load(cls, path: str) -> "Cassette":
        """Load a cassette from a JSON file.

        Args:
            path: File path to load from

        Returns:
            Cassette instance

        Raises:
            IOError: If the file cannot be read
            ValueError: If the file contains invalid data
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (IOError, OSError) as e:
            raise IOError(f"Failed to read cassette from {path}: {e}") from e
        except ValueError as e:
            raise ValueError(f"Invalid cassette format in {path}: {e}") from e

    def to_json(self) -> str:
        """Convert the cassette to a JSON string.

        Returns:
            JSON string representation
        """
        with self._lock:
            data = self.model_dump(mode="json")
        return json.dumps(data, indent=2, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Cassette":
        """Create a cassette from a JSON string.

        Raises:
            ValueError: If the JSON is invalid or doesn't match the schema
        """
        try:
            data = json.loads(json_str)
            return cls.model_validate(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in cassette: {e}") from e
        except ValueError as e:
            raise ValueError(f"Invalid cassette format: {e}") from e

    @property
    def interaction_count(self) -> int:
        """Get the number of interactions in the cassette."""
        return len(self.interactions)
