"""
Transmission RPC Client
Talks to a Transmission daemon's JSON-RPC endpoint over aiohttp.

RPC Documentation: https://github.com/transmission/transmission/blob/main/docs/rpc-spec.md
Endpoint: {protocol}://{host}:{port}{url_base}rpc
"""

import asyncio
import base64
import logging
from typing import Optional

import aiohttp

from .client import TorrentClientProxy
from .exceptions import ClientAuthenticationError, ClientUnavailableError
from .models import TransmissionTorrent

logger = logging.getLogger(__name__)

SESSION_ID_HEADER = "X-Transmission-Session-Id"

TORRENT_FIELDS = [
    "id",
    "hashString",
    "name",
    "downloadDir",
    "totalSize",
    "leftUntilDone",
    "isFinished",
    "percentDone",
    "eta",
    "status",
    "secondsDownloading",
    "secondsSeeding",
    "errorString",
    "uploadedEver",
    "downloadedEver",
    "seedRatioLimit",
    "seedRatioMode",
    "seedIdleLimit",
    "seedIdleMode",
]


class TransmissionProxy(TorrentClientProxy):
    """
    Client for the Transmission RPC interface.

    Transmission guards against CSRF with a session id: the first request is
    answered with 409 and the id to use, which we store and replay.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9091,
        url_base: str = "/transmission/",
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.url_base = url_base
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_id: Optional[str] = None

        protocol = "https" if use_ssl else "http"
        base = "/" + url_base.strip("/") + "/" if url_base.strip("/") else "/"
        self._rpc_url = f"{protocol}://{host}:{port}{base}rpc"

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            auth = None
            if self.username:
                auth = aiohttp.BasicAuth(self.username, self.password or "")
            self._session = aiohttp.ClientSession(
                auth=auth,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _request(self, method: str, arguments: Optional[dict] = None) -> dict:
        """Make an RPC call and return its ``arguments``."""
        session = await self._get_session()
        payload = {"method": method, "arguments": arguments or {}}

        try:
            for _attempt in range(2):
                headers = {SESSION_ID_HEADER: self._session_id} if self._session_id else {}
                async with session.post(self._rpc_url, json=payload, headers=headers) as response:
                    if response.status == 409:
                        # Stale or missing session id, replay with the new one
                        self._session_id = response.headers.get(SESSION_ID_HEADER)
                        logger.debug("Transmission session id refreshed")
                        continue

                    if response.status in (401, 403):
                        raise ClientAuthenticationError(
                            "Transmission authentication failed",
                            f"HTTP {response.status}",
                        )

                    if response.status != 200:
                        raise ClientUnavailableError(
                            "Transmission request failed",
                            f"HTTP {response.status}: {response.reason}",
                        )

                    result = await response.json(content_type=None)
                    if result.get("result") != "success":
                        raise ClientUnavailableError(
                            f"Transmission RPC error in {method}", str(result.get("result"))
                        )
                    return result.get("arguments", {})

            raise ClientUnavailableError(
                "Transmission request failed", "session id handshake did not succeed"
            )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Transmission request failed: {e}")
            raise ClientUnavailableError("Unable to connect to Transmission", str(e)) from e

    async def close(self):
        """Close the client connection."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get_session_config(self) -> dict:
        """Return the daemon's ``session-get`` arguments."""
        return await self._request("session-get")

    async def get_client_version(self) -> str:
        config = await self.get_session_config()
        return str(config.get("version", ""))

    async def get_default_download_directory(self) -> str:
        config = await self.get_session_config()
        return str(config.get("download-dir", ""))

    async def get_torrents(self) -> list[TransmissionTorrent]:
        """List all torrents, in the order the daemon returns them."""
        result = await self._request("torrent-get", {"fields": TORRENT_FIELDS})
        return [TransmissionTorrent.from_rpc(item) for item in result.get("torrents", [])]

    async def _add_torrent(self, arguments: dict, download_directory: Optional[str]) -> str:
        if download_directory:
            arguments["download-dir"] = download_directory

        result = await self._request("torrent-add", arguments)
        added = result.get("torrent-added") or result.get("torrent-duplicate") or {}
        torrent_hash = str(added.get("hashString", ""))
        if "torrent-duplicate" in result:
            logger.info(f"Torrent already present in Transmission: {added.get('name', torrent_hash)}")
        return torrent_hash

    async def add_torrent_from_url(self, url: str, download_directory: Optional[str] = None) -> str:
        """Add a torrent by magnet link or URL; returns the daemon's hash."""
        return await self._add_torrent({"filename": url, "paused": False}, download_directory)

    async def add_torrent_from_data(self, data: bytes, download_directory: Optional[str] = None) -> str:
        """Add a torrent from .torrent file content; returns the daemon's hash."""
        metainfo = base64.b64encode(data).decode("ascii")
        return await self._add_torrent({"metainfo": metainfo, "paused": False}, download_directory)
