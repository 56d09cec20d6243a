"""
Queue Models
Raw Transmission torrent records and the canonical, client-agnostic queue items
built from them on every poll.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum, IntEnum
from typing import Optional


class TransmissionTorrentStatus(IntEnum):
    """Transmission RPC ``status`` codes."""
    STOPPED = 0
    CHECK_WAIT = 1
    CHECK = 2
    QUEUED = 3  # download-wait
    DOWNLOADING = 4
    SEEDING_WAIT = 5
    SEEDING = 6


class SeedLimitMode(IntEnum):
    """Transmission ``seedRatioMode`` / ``seedIdleMode`` values."""
    GLOBAL = 0
    SINGLE = 1
    UNLIMITED = 2


class DownloadItemStatus(Enum):
    """Canonical status of a queue item."""
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


def _to_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _to_float(value, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if result != result:  # NaN
        return default
    return result


def _to_mode(value) -> SeedLimitMode:
    try:
        return SeedLimitMode(_to_int(value))
    except ValueError:
        return SeedLimitMode.GLOBAL


@dataclass(frozen=True)
class TransmissionTorrent:
    """One torrent as returned by Transmission's ``torrent-get``."""
    hash_string: str
    name: str
    status: TransmissionTorrentStatus
    download_dir: str = ""
    total_size: int = 0
    left_until_done: int = 0
    is_finished: bool = False
    percent_done: float = 0.0
    eta: int = -1
    error_string: str = ""
    downloaded_ever: int = 0
    uploaded_ever: int = 0
    seconds_seeding: int = 0
    seed_ratio_mode: SeedLimitMode = SeedLimitMode.GLOBAL
    seed_ratio_limit: float = 0.0
    seed_idle_mode: SeedLimitMode = SeedLimitMode.GLOBAL
    seed_idle_limit: int = 0  # minutes

    @classmethod
    def from_rpc(cls, data: dict) -> "TransmissionTorrent":
        """Build a record from an RPC entry, coercing malformed numbers to defaults."""
        try:
            status = TransmissionTorrentStatus(_to_int(data.get("status"), -1))
        except ValueError:
            # Unknown codes must never look paused to the seeding policy
            status = TransmissionTorrentStatus.DOWNLOADING

        return cls(
            hash_string=str(data.get("hashString") or ""),
            name=str(data.get("name") or ""),
            status=status,
            download_dir=str(data.get("downloadDir") or ""),
            total_size=_to_int(data.get("totalSize")),
            left_until_done=_to_int(data.get("leftUntilDone")),
            is_finished=bool(data.get("isFinished", False)),
            percent_done=_to_float(data.get("percentDone")),
            eta=_to_int(data.get("eta"), -1),
            error_string=str(data.get("errorString") or ""),
            downloaded_ever=_to_int(data.get("downloadedEver")),
            uploaded_ever=_to_int(data.get("uploadedEver")),
            seconds_seeding=_to_int(data.get("secondsSeeding")),
            seed_ratio_mode=_to_mode(data.get("seedRatioMode")),
            seed_ratio_limit=_to_float(data.get("seedRatioLimit")),
            seed_idle_mode=_to_mode(data.get("seedIdleMode")),
            seed_idle_limit=_to_int(data.get("seedIdleLimit")),
        )

    @property
    def finished(self) -> bool:
        """True once all wanted data is present."""
        if self.is_finished or self.percent_done >= 1.0:
            return True
        return self.total_size > 0 and self.left_until_done == 0

    @property
    def ratio(self) -> float:
        if self.downloaded_ever <= 0:
            return 0.0
        try:
            return self.uploaded_ever / self.downloaded_ever
        except OverflowError:
            return float("inf")

    @property
    def is_stopped(self) -> bool:
        return self.status == TransmissionTorrentStatus.STOPPED

    @property
    def is_seeding(self) -> bool:
        return self.status in (
            TransmissionTorrentStatus.SEEDING,
            TransmissionTorrentStatus.SEEDING_WAIT,
        )

    @property
    def has_metadata(self) -> bool:
        """Magnets still fetching metadata report no size and no real name."""
        return self.total_size > 0 and bool(self.name)

    @property
    def ratio_limit_override(self) -> Optional[float]:
        if self.seed_ratio_mode == SeedLimitMode.SINGLE:
            return self.seed_ratio_limit
        return None

    @property
    def idle_limit_override(self) -> Optional[timedelta]:
        if self.seed_idle_mode != SeedLimitMode.SINGLE:
            return None
        try:
            return timedelta(minutes=self.seed_idle_limit)
        except OverflowError:
            return None

    @property
    def seeding_time(self) -> timedelta:
        try:
            return timedelta(seconds=max(0, self.seconds_seeding))
        except OverflowError:
            return timedelta.max


@dataclass(frozen=True)
class SeedingLimits:
    """Process-wide seeding limits; ``None`` means the dimension is not limited."""
    ratio_limit: Optional[float] = None
    idle_limit: Optional[timedelta] = None


@dataclass(frozen=True)
class ScopeConfig:
    """Where this client's downloads live: an exact directory or a category subfolder."""
    directory: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class DownloadClientItem:
    """Canonical, client-agnostic view of one download."""
    download_id: str
    title: str
    status: DownloadItemStatus
    output_path: str
    category: Optional[str] = None
    total_size: int = 0
    remaining_size: int = 0
    remaining_time: Optional[timedelta] = None
    seed_ratio: float = 0.0
    message: Optional[str] = None
    can_be_removed: bool = False
    can_move_files: bool = False

    def __post_init__(self):
        if self.status != DownloadItemStatus.COMPLETED and (
            self.can_be_removed or self.can_move_files
        ):
            raise ValueError(
                f"Only completed items can be removed or moved (status={self.status.value})"
            )


@dataclass(frozen=True)
class DownloadClientStatus:
    """Where the client writes, and whether it shares our filesystem."""
    is_localhost: bool
    output_root_folders: list[str] = field(default_factory=list)
