"""
Status normalization.
Maps a Transmission status code plus the "finished" signal onto the canonical
queue status. Rules are evaluated top to bottom; the first match wins.
"""

from typing import Callable

from .models import DownloadItemStatus, TransmissionTorrentStatus

VERIFYING_STATES = frozenset({
    TransmissionTorrentStatus.CHECK,
    TransmissionTorrentStatus.CHECK_WAIT,
})

StatusRule = tuple[str, Callable[[TransmissionTorrentStatus, bool], bool], DownloadItemStatus]

STATUS_RULES: list[StatusRule] = [
    ("verifying", lambda status, finished: status in VERIFYING_STATES, DownloadItemStatus.DOWNLOADING),
    ("finished", lambda status, finished: finished, DownloadItemStatus.COMPLETED),
    ("queued", lambda status, finished: status == TransmissionTorrentStatus.QUEUED, DownloadItemStatus.QUEUED),
]

DEFAULT_STATUS = DownloadItemStatus.DOWNLOADING


def normalize_status(status: TransmissionTorrentStatus, finished: bool) -> DownloadItemStatus:
    """Return the canonical status for a raw status code."""
    for _name, matches, result in STATUS_RULES:
        if matches(status, finished):
            return result
    return DEFAULT_STATUS
