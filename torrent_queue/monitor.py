"""
Queue Monitor
Polls a download client on a fixed interval and reports each download once
when it becomes importable or removable, so a scheduler never acts twice on
the same item. Retry and backoff live here, not in the engine.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from .client import TransmissionClient
from .exceptions import TorrentQueueError
from .logging_config import LogContext
from .models import DownloadClientItem
from .retry import CircuitBreaker, CircuitBreakerConfig, RetryConfig, RetryHandler

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    """Outcome of one monitor poll."""
    items: list[DownloadClientItem] = field(default_factory=list)
    importable: list[DownloadClientItem] = field(default_factory=list)
    removable: list[DownloadClientItem] = field(default_factory=list)
    vanished: list[str] = field(default_factory=list)


class QueueMonitor:
    """Diffs successive snapshots of one client."""

    def __init__(
        self,
        client: TransmissionClient,
        interval: float = 60.0,
        retry_config: Optional[RetryConfig] = None,
        circuit_config: Optional[CircuitBreakerConfig] = None,
    ):
        self.client = client
        self.interval = interval
        self._retry_handler = RetryHandler(retry_config or RetryConfig())
        self._circuit_breaker = CircuitBreaker(
            circuit_config or CircuitBreakerConfig(),
            name=client.name.lower(),
        )
        self._previous: dict[str, DownloadClientItem] = {}

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def poll_once(self) -> PollResult:
        """
        Poll the client once and diff against the previous snapshot.

        Raises:
            CircuitOpenError: the client failed too often recently
            TorrentQueueError: the poll failed after retries
        """
        items = await self._circuit_breaker.execute(
            lambda: self._retry_handler.with_retry(
                operation=self.client.get_items,
                operation_id=f"{self.client.name.lower()}_get_items",
            )
        )

        result = PollResult(items=items)
        current = {item.download_id: item for item in items}

        for item in items:
            previous = self._previous.get(item.download_id)
            if item.can_move_files and not (previous and previous.can_move_files):
                result.importable.append(item)
            if item.can_be_removed and not (previous and previous.can_be_removed):
                result.removable.append(item)

        result.vanished = [download_id for download_id in self._previous if download_id not in current]
        self._previous = current

        for item in result.importable:
            with LogContext(download_id=item.download_id, title=item.title, client=self.client.name):
                logger.info(f"Download ready for import: {item.title} -> {item.output_path}")

        return result

    async def run(
        self,
        callback: Optional[Callable[[PollResult], Awaitable[None]]] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Poll until ``stop_event`` is set; failures are logged and the loop continues."""
        stop_event = stop_event or asyncio.Event()

        while not stop_event.is_set():
            try:
                result = await self.poll_once()
                logger.debug(
                    f"Poll complete: {len(result.items)} items, "
                    f"{len(result.importable)} importable, {len(result.removable)} removable"
                )
                if callback:
                    await callback(result)
            except TorrentQueueError as e:
                logger.warning(f"Poll of {self.client.name} failed: {e}")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
