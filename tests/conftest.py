"""
Pytest configuration and shared fixtures.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from torrent_queue.client import TorrentClientProxy, TransmissionClient
from torrent_queue.config import Settings
from torrent_queue.models import (
    SeedLimitMode,
    SeedingLimits,
    TransmissionTorrent,
    TransmissionTorrentStatus,
)

DEFAULT_DOWNLOAD_DIR = "C:/Downloads/Finished/transmission"
TITLE = "Droned.1998.1080p.WEB-DL-DRONE"


def make_settings(**overrides) -> Settings:
    """Settings that ignore the environment and any .env file."""
    overrides.setdefault("host", "127.0.0.1")
    return Settings(_env_file=None, **overrides)


# ============================================================================
# Raw Torrent Fixtures
# ============================================================================

@pytest.fixture
def queued_torrent():
    """A torrent waiting for a download slot."""
    return TransmissionTorrent(
        hash_string="HASH",
        name=TITLE,
        status=TransmissionTorrentStatus.QUEUED,
        download_dir=DEFAULT_DOWNLOAD_DIR,
        total_size=1000,
        left_until_done=1000,
        is_finished=False,
        eta=0,
    )


@pytest.fixture
def downloading_torrent(queued_torrent):
    """A torrent halfway through downloading."""
    return replace(
        queued_torrent,
        status=TransmissionTorrentStatus.DOWNLOADING,
        left_until_done=100,
        percent_done=0.9,
        downloaded_ever=900,
        eta=10,
    )


@pytest.fixture
def failed_torrent(downloading_torrent):
    """A torrent the daemon reports an error for."""
    return replace(
        downloading_torrent,
        status=TransmissionTorrentStatus.STOPPED,
        error_string="Error: tracker unreachable",
    )


@pytest.fixture
def completed_torrent(queued_torrent):
    """A fully downloaded torrent that is still seeding."""
    return replace(
        queued_torrent,
        status=TransmissionTorrentStatus.SEEDING,
        left_until_done=0,
        percent_done=1.0,
        is_finished=True,
        downloaded_ever=1000,
        uploaded_ever=0,
        eta=-1,
    )


@pytest.fixture
def magnet_torrent(queued_torrent):
    """A magnet link that is still fetching metadata."""
    return replace(
        queued_torrent,
        name="",
        total_size=0,
        left_until_done=0,
        eta=-2,
    )


def completed_with(
    torrent: TransmissionTorrent,
    stopped: bool,
    ratio: float = 0.0,
    seeding_minutes: int = 0,
    ratio_limit: float | None = None,
    idle_limit: int | None = None,
) -> TransmissionTorrent:
    """Shape a completed torrent for seeding policy tests."""
    return replace(
        torrent,
        status=TransmissionTorrentStatus.STOPPED if stopped else TransmissionTorrentStatus.SEEDING,
        downloaded_ever=1000,
        uploaded_ever=int(ratio * 1000),
        seconds_seeding=seeding_minutes * 60,
        seed_ratio_mode=SeedLimitMode.SINGLE if ratio_limit is not None else SeedLimitMode.GLOBAL,
        seed_ratio_limit=ratio_limit or 0.0,
        seed_idle_mode=SeedLimitMode.SINGLE if idle_limit is not None else SeedLimitMode.GLOBAL,
        seed_idle_limit=idle_limit or 0,
    )


def global_limits(ratio: float | None = None, idle_minutes: int | None = None) -> SeedingLimits:
    return SeedingLimits(
        ratio_limit=ratio,
        idle_limit=timedelta(minutes=idle_minutes) if idle_minutes is not None else None,
    )


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def mock_proxy():
    """Mock proxy returning no torrents by default."""
    proxy = AsyncMock(spec=TorrentClientProxy)
    proxy.get_torrents.return_value = []
    proxy.add_torrent_from_url.return_value = "CBC2F069FE8BB2F544EAE707D75BCD3DE9DCF951"
    proxy.add_torrent_from_data.return_value = "abcdef0123456789abcdef0123456789abcdef01"
    proxy.get_client_version.return_value = "2.84 (14307)"
    proxy.get_default_download_directory.return_value = DEFAULT_DOWNLOAD_DIR
    return proxy


@pytest.fixture
def make_client(mock_proxy):
    """Factory for engines over the mock proxy."""
    def _make(torrents=None, limits: SeedingLimits | None = None, **settings):
        if torrents is not None:
            mock_proxy.get_torrents.return_value = list(torrents)
        return TransmissionClient(mock_proxy, make_settings(**settings), limits or SeedingLimits())
    return _make


# ============================================================================
# Retry/Circuit Breaker Fixtures
# ============================================================================

@pytest.fixture
def retry_config():
    """Create a retry config with fast settings for tests."""
    from torrent_queue.retry import RetryConfig

    return RetryConfig(
        max_attempts=3,
        initial_delay=0.01,  # Fast for tests
        max_delay=0.1,
        jitter=False,
    )


@pytest.fixture
def circuit_config():
    """Create a circuit breaker config for tests."""
    from torrent_queue.retry import CircuitBreakerConfig

    return CircuitBreakerConfig(
        failure_threshold=2,
        success_threshold=1,
        reset_timeout=0.1,  # Fast for tests
    )


# ============================================================================
# Logging Fixtures
# ============================================================================

@pytest.fixture
def clean_logging():
    """Clean up logging handlers before and after test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level

    yield

    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in original_handlers:
        root.addHandler(handler)
    root.setLevel(original_level)
