"""
Download Client Reconciliation
Polls a torrent daemon through a proxy, turns its raw torrent records into
canonical queue items, and applies the seeding policy that decides which
completed downloads may be imported or removed.

The engine keeps no state between polls: every call is one round trip to the
proxy and returns a complete snapshot, or raises.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from .config import Settings
from .duration import parse_eta
from .exceptions import (
    ClientUnavailableError,
    IncompatibleClientVersionError,
    InvalidReleaseUrlError,
    TorrentQueueError,
)
from .logging_config import log_operation
from .magnet import is_magnet, magnet_display_name, resolve_magnet_hash
from .models import (
    DownloadClientItem,
    DownloadClientStatus,
    DownloadItemStatus,
    ScopeConfig,
    SeedingLimits,
    TransmissionTorrent,
)
from .scope import build_output_path, in_scope, native_path, resolve_download_directory
from .seeding import NOT_ELIGIBLE, evaluate
from .status import normalize_status

logger = logging.getLogger(__name__)

MINIMUM_VERSION = (2, 40)
LOCALHOST_NAMES = ("localhost", "127.0.0.1", "::1")

_VERSION_NUMBER = re.compile(r"^\s*v?(\d+(?:\.\d+)*)")


class TorrentClientProxy(ABC):
    """Capability interface every daemon family's proxy implements."""

    @abstractmethod
    async def get_torrents(self) -> list[TransmissionTorrent]:
        ...

    @abstractmethod
    async def add_torrent_from_url(self, url: str, download_directory: Optional[str] = None) -> str:
        ...

    @abstractmethod
    async def add_torrent_from_data(self, data: bytes, download_directory: Optional[str] = None) -> str:
        ...

    @abstractmethod
    async def get_client_version(self) -> str:
        ...

    @abstractmethod
    async def get_default_download_directory(self) -> str:
        ...

    async def close(self) -> None:
        return None


def parse_version(version: str) -> Optional[tuple[int, ...]]:
    """Leading numeric version, ignoring ``+`` and ``(...)`` annotations."""
    match = _VERSION_NUMBER.match(version or "")
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def is_localhost(host: str) -> bool:
    host = (host or "").strip().lower().strip("[]")
    return host in LOCALHOST_NAMES or host.startswith("127.")


class TransmissionClient:
    """
    Reconciliation engine for a Transmission daemon.
    Written against TorrentClientProxy so another daemon family only needs a
    proxy that yields the same raw records.
    """

    name = "Transmission"

    def __init__(
        self,
        proxy: TorrentClientProxy,
        settings: Settings,
        seeding_limits: Optional[SeedingLimits] = None,
    ):
        self._proxy = proxy
        self.settings = settings
        self.seeding_limits = seeding_limits or settings.seeding_limits()
        self.scope: ScopeConfig = settings.scope()

    async def _call_proxy(self, operation: str, call):
        """Run a proxy call, reporting any failure as ClientUnavailableError."""
        try:
            return await call()
        except TorrentQueueError:
            raise
        except Exception as e:
            logger.error(f"{self.name} {operation} failed: {e}")
            raise ClientUnavailableError(f"{self.name} {operation} failed", str(e)) from e

    async def get_items(self) -> list[DownloadClientItem]:
        """Poll the daemon and return the scoped, policy-annotated queue."""
        torrents = await self._call_proxy("torrent listing", self._proxy.get_torrents)

        items = []
        for torrent in torrents:
            # Magnets still fetching metadata are not actionable yet
            if not torrent.has_metadata:
                continue

            if not in_scope(torrent.download_dir, self.scope):
                continue

            items.append(self._build_item(torrent))

        logger.debug(f"{self.name} returned {len(torrents)} torrents, {len(items)} in scope")
        return items

    def _build_item(self, torrent: TransmissionTorrent) -> DownloadClientItem:
        if torrent.error_string.strip():
            status = DownloadItemStatus.WARNING
            message = torrent.error_string
        else:
            status = normalize_status(torrent.status, torrent.finished)
            message = None

        if status == DownloadItemStatus.COMPLETED:
            decision = evaluate(torrent, self.seeding_limits)
        else:
            decision = NOT_ELIGIBLE

        return DownloadClientItem(
            download_id=torrent.hash_string.upper(),
            title=torrent.name,
            status=status,
            output_path=build_output_path(torrent.download_dir, torrent.name),
            category=self.scope.category,
            total_size=torrent.total_size,
            remaining_size=max(0, torrent.left_until_done),
            remaining_time=parse_eta(torrent.eta),
            seed_ratio=torrent.ratio,
            message=message,
            can_be_removed=decision.can_be_removed,
            can_move_files=decision.can_move_files,
        )

    async def _default_download_directory(self) -> Optional[str]:
        directory = await self._call_proxy(
            "session lookup", self._proxy.get_default_download_directory
        )
        return directory or None

    async def get_download_directory(self) -> Optional[str]:
        """Directory new downloads are sent to; None leaves it to the daemon."""
        if self.scope.directory:
            return self.scope.directory
        if self.scope.category:
            return resolve_download_directory(self.scope, await self._default_download_directory())
        return None

    async def download(self, url: Optional[str] = None, data: Optional[bytes] = None) -> str:
        """
        Submit a release to the daemon and return its download id.

        Magnet links are identified by their own info hash, resolved before the
        daemon is contacted. Torrent file content is identified by the hash the
        daemon reports back.

        Raises:
            InvalidReleaseUrlError: the submission carries no usable identifier
            ClientUnavailableError: the daemon could not be reached
        """
        if url is None and data is None:
            raise InvalidReleaseUrlError("", "Either a url or torrent data is required")

        magnet_hash = resolve_magnet_hash(url) if is_magnet(url) else None
        download_directory = await self.get_download_directory()

        if data is not None:
            returned = await self._call_proxy(
                "torrent add",
                lambda: self._proxy.add_torrent_from_data(data, download_directory),
            )
            title = "torrent file"
        else:
            returned = await self._call_proxy(
                "torrent add",
                lambda: self._proxy.add_torrent_from_url(url, download_directory),
            )
            title = magnet_display_name(url) if magnet_hash else url

        download_id = magnet_hash or (returned or "").upper()
        if not download_id:
            raise InvalidReleaseUrlError(url or "", f"{self.name} did not return a hash for {title}")

        log_operation(
            logger,
            f"Added download: {title} (directory: {download_directory or 'default'})",
            download_id=download_id,
            title=title,
            client=self.name,
        )
        return download_id

    async def get_status(self) -> DownloadClientStatus:
        """Report whether the daemon is local and which folders it writes to."""
        destination = await self.get_download_directory()
        if destination is None:
            destination = await self._default_download_directory()

        output_roots = [native_path(destination)] if destination else []
        return DownloadClientStatus(
            is_localhost=is_localhost(self.settings.host),
            output_root_folders=output_roots,
        )

    async def verify_client_version(self) -> str:
        """
        Check the daemon's version against the supported minimum.

        Returns:
            The version string as advertised

        Raises:
            IncompatibleClientVersionError: below the minimum or unparsable
        """
        version = await self._call_proxy("version lookup", self._proxy.get_client_version)
        minimum = ".".join(str(part) for part in MINIMUM_VERSION)
        parsed = parse_version(version)

        if parsed is None or parsed < MINIMUM_VERSION:
            raise IncompatibleClientVersionError(version, minimum)

        logger.debug(f"{self.name} version {version} is supported")
        return version

    async def test_connection(self) -> tuple[bool, str]:
        """Check version compatibility and list torrents once."""
        try:
            version = await self.verify_client_version()
            items = await self.get_items()
            return True, f"Connected to {self.name} {version} ({len(items)} items in scope)"
        except TorrentQueueError as e:
            return False, str(e)

    async def close(self):
        """Close the proxy connection."""
        await self._proxy.close()
