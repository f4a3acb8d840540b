"""Settings file for HTTP VCR.

Settings live in a small JSON file, ``http-vcr.json`` by default:

    {
        "cassette_dir": "tests/cassettes",
        "match_strategy": "method_and_url",
        "suffix": ".json",
        "tags": {"suite": "integration"}
    }

Every key is optional.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from http_vcr.core.matcher import RequestMatcher

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "http-vcr.json"


class VCRSettings(BaseModel):
    """Recorder settings shared by the CLI and the pytest plugin."""

    cassette_dir: str = Field("cassettes", description="Directory holding cassette files")
    match_strategy: str = Field(
        "method_and_url", description="Request matching strategy used when replaying"
    )
    suffix: str = Field(".json", description="File suffix for cassette files")
    tags: Dict[str, str] = Field(
        default_factory=dict, description="Tags written into new cassettes"
    )

    @field_validator("match_strategy")
    @classmethod
    def validate_match_strategy(cls, v: str) -> str:
        if v not in RequestMatcher.VALID_STRATEGIES:
            raise ValueError(
                f"Unknown matching strategy: '{v}'. "
                f"Valid strategies: {', '.join(sorted(RequestMatcher.VALID_STRATEGIES))}"
            )
        return v


def load_settings(path: str | Path) -> VCRSettings:
    """Load settings from a JSON file.

    Args:
        path: Path to the settings file

    Returns:
        VCRSettings instance

    Raises:
        IOError: If the file cannot be read
        ValueError: If the file is not valid JSON or has invalid values
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (IOError, OSError) as e:
        raise IOError(f"Failed to read settings from {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")

    settings = VCRSettings.model_validate(data)
    logger.debug(f"Loaded settings from {path}: {settings}")
    return settings


def find_settings(start: str | Path = ".") -> VCRSettings:
    """Load ``http-vcr.json`` from a directory, or return defaults.

    Args:
        start: Directory to look in

    Returns:
        Settings from the file if it exists, default settings otherwise
    """
    candidate = Path(start) / SETTINGS_FILENAME
    if candidate.is_file():
        return load_settings(candidate)
    return VCRSettings()


def resolve_settings(path: Optional[str | Path] = None) -> VCRSettings:
    """Load settings from an explicit path, or discover them in the working directory."""
    if path:
        return load_settings(path)
    return find_settings()


__all__ = [
    "SETTINGS_FILENAME",
    "VCRSettings",
    "load_settings",
    "find_settings",
    "resolve_settings",
]
