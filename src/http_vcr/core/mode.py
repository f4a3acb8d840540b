"""Recorder operating mode."""

from typing import Literal

Mode = Literal["recording", "replaying"]

RECORDING: Mode = "recording"
REPLAYING: Mode = "replaying"

VALID_MODES = {RECORDING, REPLAYING}


def resolve_mode(cassette_exists: bool) -> Mode:
    """Pick the mode for a new recorder.

    A stored cassette is replayed; a missing one is recorded.

    Args:
        cassette_exists: Whether storage already holds the cassette

    Returns:
        "replaying" if the cassette exists, otherwise "recording"
    """
    return REPLAYING if cassette_exists else RECORDING


def validate_mode(mode: str) -> Mode:
    """Check that a mode string is one of the known modes.

    Raises:
        ValueError: If mode is not "recording" or "replaying"
    """
    if mode not in VALID_MODES:
        raise ValueError(
            f"Unknown mode: '{mode}'. Valid modes: {', '.join(sorted(VALID_MODES))}"
        )
    return mode  # type: ignore[return-value]
