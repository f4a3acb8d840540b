"""Pytest plugin for HTTP VCR - recording and replaying HTTP traffic in tests.

Provides fixtures and a marker for running tests against recorded cassettes.
The first run of a test records its traffic; later runs replay it.

Usage:
    # In your test file:
    def test_user(vcr_client):
        response = vcr_client.get("https://api.example.com/users/1")
        assert response.status_code == 200

    # Pick the cassette name and override recorder arguments:
    @pytest.mark.vcr("shared/users", match_strategy="method_url_body")
    def test_users(vcr_recorder):
        with vcr_recorder.client() as client:
            client.get("https://api.example.com/users")

Options:
    --vcr-dir DIR              cassette directory (default: settings or cassettes/)
    --vcr-record               discard existing cassettes so they are re-recorded
    --vcr-match-strategy NAME  request matching strategy for replay
    --vcr-config PATH          settings file (default: ./http-vcr.json if present)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator

import httpx
import pytest

from http_vcr.config import VCRSettings, resolve_settings
from http_vcr.core.matcher import RequestMatcher
from http_vcr.core.storage import CassetteStorage
from http_vcr.recorder import Recorder

logger = logging.getLogger(__name__)


class VCRConfig:
    """Configuration for the VCR pytest plugin."""

    def __init__(self, settings: VCRSettings, vcr_record: bool):
        """Initialize VCR configuration.

        Args:
            settings: Settings resolved from the config file and command line
            vcr_record: Whether to re-record cassettes that already exist
        """
        self.settings = settings
        self.vcr_record = vcr_record
        self.recorded: set[str] = set()


def pytest_addoption(parser: Any) -> None:
    """Add pytest command-line options for VCR."""
    group = parser.getgroup("vcr")
    group.addoption(
        "--vcr-record",
        action="store_true",
        default=False,
        help="Discard existing VCR cassettes and record them again",
    )
    group.addoption(
        "--vcr-dir",
        default=None,
        help="Directory for VCR cassette files (default: cassettes/)",
    )
    group.addoption(
        "--vcr-match-strategy",
        default=None,
        choices=sorted(RequestMatcher.VALID_STRATEGIES),
        help="Request matching strategy used when replaying",
    )
    group.addoption(
        "--vcr-config",
        default=None,
        help="Path to an http-vcr.json settings file",
    )


def pytest_configure(config: Any) -> None:
    """Register the vcr marker and store the resolved VCR config."""
    config.addinivalue_line(
        "markers",
        "vcr(name, **recorder_kwargs): Use a specific cassette name and Recorder arguments for this test",
    )

    settings = resolve_settings(config.getoption("--vcr-config"))
    overrides: dict[str, Any] = {}
    if config.getoption("--vcr-dir"):
        overrides["cassette_dir"] = config.getoption("--vcr-dir")
    if config.getoption("--vcr-match-strategy"):
        overrides["match_strategy"] = config.getoption("--vcr-match-strategy")
    if overrides:
        settings = settings.model_copy(update=overrides)

    config.vcr = VCRConfig(settings=settings, vcr_record=config.getoption("--vcr-record"))


def cassette_name_for(node: Any) -> str:
    """Derive the cassette name for a test item.

    Uses the name given to @pytest.mark.vcr("name") if present, otherwise
    ``<module>/<test name>`` with characters unsafe in file names replaced.
    """
    marker = node.get_closest_marker("vcr")
    if marker and marker.args:
        return str(marker.args[0])

    module = getattr(node, "module", None)
    module_name = module.__name__.rsplit(".", 1)[-1] if module else "tests"
    test_name = re.sub(r"[^\w.-]+", "_", node.name).strip("_")
    return f"{module_name}/{test_name}"


@pytest.fixture
def vcr_settings(request: Any) -> VCRSettings:
    """Settings used by the VCR fixtures of this session."""
    return request.config.vcr.settings


@pytest.fixture
def vcr_recorder(request: Any, vcr_settings: VCRSettings) -> Iterator[Recorder]:
    """Get a recorder for the test's cassette.

    Records when the cassette does not exist yet (or with --vcr-record) and
    replays otherwise. The recorder is stopped after the test, which saves
    newly recorded cassettes. Async tests that use ``async_transport`` should
    ``await vcr_recorder.aclose()`` themselves.

    Yields:
        Recorder: The recorder for this test.
    """
    vcr_config: VCRConfig = request.config.vcr
    name = cassette_name_for(request.node)

    recorder_kwargs: dict[str, Any] = {}
    marker = request.node.get_closest_marker("vcr")
    if marker:
        recorder_kwargs.update(marker.kwargs)

    # Tests sharing a cassette name append to what this session already recorded.
    if name in vcr_config.recorded:
        recorder_kwargs.setdefault("record", True)
    elif vcr_config.vcr_record:
        CassetteStorage(vcr_settings.cassette_dir, suffix=vcr_settings.suffix).delete(name)

    recorder = Recorder.from_settings(name, vcr_settings, **recorder_kwargs)
    if recorder.is_recording:
        vcr_config.recorded.add(name)
    logger.debug(f"Test {request.node.nodeid} uses cassette '{name}' ({recorder.mode})")
    try:
        yield recorder
    finally:
        try:
            recorder.stop()
        finally:
            recorder.close()


@pytest.fixture
def vcr_client(vcr_recorder: Recorder) -> Iterator[httpx.Client]:
    """Get an httpx.Client routed through the test's recorder."""
    with vcr_recorder.client() as client:
        yield client
