"""Request matcher for replay — matches outgoing requests to recorded interactions."""

from typing import List, Literal, Optional

import httpx

from http_vcr.core.format import Interaction


MatchStrategy = Literal["method_and_url", "method_url_body", "path", "exact", "sequential"]


class RequestMatcher:
    """Matches outgoing requests to recorded interactions using various strategies.

    Strategies:
    - method_and_url: Match method + full URL (default)
    - method_url_body: Match method + full URL + request body bytes
    - path: Match method + path + query, ignoring scheme, host and port
    - exact: Match method + URL + body + parsed form fields
    - sequential: Return interactions in order regardless of match

    The first recorded interaction that matches wins, so lookups are
    deterministic for a given request.
    """

    VALID_STRATEGIES = {"method_and_url", "method_url_body", "path", "exact", "sequential"}

    def __init__(self, strategy: MatchStrategy = "method_and_url") -> None:
        """Initialize the request matcher.

        Args:
            strategy: Matching strategy to use

        Raises:
            ValueError: If strategy is not a valid matching strategy
        """
        if strategy not in self.VALID_STRATEGIES:
            raise ValueError(
                f"Unknown matching strategy: '{strategy}'. "
                f"Valid strategies: {', '.join(sorted(self.VALID_STRATEGIES))}"
            )
        self.strategy = strategy
        self._sequential_index = 0

    def reset_sequential_index(self) -> None:
        """Reset the sequential index counter."""
        self._sequential_index = 0

    def find_match(
        self, request: httpx.Request, interactions: List[Interaction]
    ) -> Optional[Interaction]:
        """Find a single matching interaction for the given request.

        Args:
            request: The outgoing request to match
            interactions: Recorded interactions to search

        Returns:
            The first matching Interaction, or None if no match found
        """
        if self.strategy == "sequential":
            return self._next_sequential(interactions)

        for interaction in interactions:
            if self.matches(request, interaction):
                return interaction
        return None

    def matches(self, request: httpx.Request, interaction: Interaction) -> bool:
        """Check whether a single interaction matches the request.

        The sequential strategy matches everything.
        """
        recorded = interaction.request
        if self.strategy == "sequential":
            return True
        if recorded.method.upper() != request.method.upper():
            return False

        if self.strategy == "path":
            return httpx.URL(recorded.url).raw_path == request.url.raw_path

        if httpx.URL(recorded.url) != request.url:
            return False
        if self.strategy == "method_and_url":
            return True

        if recorded.content != _request_body(request):
            return False
        if self.strategy == "method_url_body":
            return True

        # exact
        from http_vcr.capture import parse_form

        return recorded.form == parse_form(request)

    def _next_sequential(self, interactions: List[Interaction]) -> Optional[Interaction]:
        """Return the next interaction in recorded order, or None when exhausted."""
        if self._sequential_index < len(interactions):
            match = interactions[self._sequential_index]
            self._sequential_index += 1
            return match
        return None


def _request_body(request: httpx.Request) -> bytes:
    # Buffers streaming bodies; request.stream stays replayable afterwards.
    return request.read()
