"""Cassette storage — maps cassette names to JSON files in a directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from http_vcr.core.format import Cassette, CassetteMetadata
from http_vcr.errors import CassetteLoadError, CassetteSaveError

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".json"


class CassetteStorage:
    """Directory of cassette files, one ``<name><suffix>`` file per cassette.

    Names may contain ``/`` to group cassettes in subdirectories.
    """

    def __init__(self, directory: str | Path = ".", suffix: str = DEFAULT_SUFFIX) -> None:
        self.directory = Path(directory)
        self.suffix = suffix

    def path_for(self, name: str) -> Path:
        """Return the file path a cassette name maps to."""
        return self.directory / f"{name}{self.suffix}"

    def exists(self, name: str) -> bool:
        """Check whether a cassette has been stored under this name."""
        return self.path_for(name).exists()

    def create_empty(self, name: str, tags: Optional[dict[str, str]] = None) -> Cassette:
        """Create a new, empty in-memory cassette. Nothing is written."""
        return Cassette(name=name, metadata=CassetteMetadata(tags=tags or {}))

    def load(self, name: str) -> Cassette:
        """Load a stored cassette.

        Raises:
            CassetteLoadError: If the file cannot be read or parsed
        """
        path = self.path_for(name)
        try:
            cassette = Cassette.load(str(path))
        except (IOError, ValueError) as e:
            logger.error(f"Failed to load cassette '{name}': {e}")
            raise CassetteLoadError(str(e)) from e

        if cassette.name != name:
            logger.debug(f"Cassette stored as '{name}' was named '{cassette.name}'")
            cassette.name = name
        logger.info(f"Loaded cassette '{name}' ({cassette.interaction_count} interactions)")
        return cassette

    def save(self, cassette: Cassette) -> Path:
        """Persist a cassette under its name.

        The file is written to a temporary path first and then renamed over
        the destination, so readers never see a partial cassette.

        Returns:
            Path the cassette was written to

        Raises:
            CassetteSaveError: If the file cannot be written
        """
        path = self.path_for(cassette.name)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            cassette.save(str(tmp_path))
            os.replace(tmp_path, path)
        except (IOError, OSError) as e:
            logger.error(f"Failed to save cassette '{cassette.name}': {e}")
            raise CassetteSaveError(f"Failed to save cassette to {path}: {e}") from e

        logger.info(f"Cassette '{cassette.name}' saved to {path}")
        return path

    def delete(self, name: str) -> bool:
        """Remove a stored cassette.

        Returns:
            True if a file was removed
        """
        path = self.path_for(name)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted cassette '{name}' ({path})")
        return True


__all__ = ["CassetteStorage", "DEFAULT_SUFFIX"]
