"""
Polling Scheduler

Fixed-interval REST refresh of a session's sample buffer, independent of the
push channel so telemetry keeps flowing while the channel is degraded.
"""

import asyncio
from typing import Callable, List, Optional

from ..common.constants import HISTORY_WINDOW_MINUTES, POLL_INTERVAL_SEC
from ..common.logging_config import ServiceLogger
from ..telemetry.models import Sample
from .stream_api import StreamAPIClient

RefreshCallback = Callable[[List[Sample], int], None]


class PollingScheduler:
    """
    Periodically re-fetches bitrate history for one stream

    Each tick takes a sequence number from ``sequence_source`` before the
    fetch starts and hands ``(samples, sequence)`` to ``on_refresh`` on
    success. Failed fetches are logged and skipped until the next tick.
    """

    def __init__(
        self,
        api_client: StreamAPIClient,
        username: str,
        on_refresh: RefreshCallback,
        sequence_source: Callable[[], int],
        interval: float = POLL_INTERVAL_SEC,
        window_minutes: int = HISTORY_WINDOW_MINUTES
    ):
        self.api_client = api_client
        self.username = username
        self.on_refresh = on_refresh
        self.sequence_source = sequence_source
        self.interval = interval
        self.window_minutes = window_minutes

        self.logger = ServiceLogger("ingestion", "polling_scheduler")
        self._task: Optional[asyncio.Task] = None
        self.polls_completed = 0
        self.polls_failed = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start the polling loop on the running event loop"""
        if self.is_running:
            self.logger.warning("Polling already running", extra={'username': self.username})
            return

        self._task = asyncio.create_task(
            self._run(),
            name=f"bitrate_poll:{self.username}"
        )
        self.logger.info(
            f"Started bitrate polling (interval: {self.interval}s)",
            extra={'username': self.username}
        )

    def stop(self) -> Optional[asyncio.Task]:
        """
        Cancel the polling loop; an in-flight fetch is abandoned

        Returns:
            The cancelled task (for callers that await its completion), or None
        """
        task, self._task = self._task, None
        if task is None:
            return None

        if not task.done():
            task.cancel()
            self.logger.info("Stopped bitrate polling", extra={'username': self.username})
        return task

    async def poll_once(self) -> bool:
        """
        Run a single refresh

        Returns:
            True if the fetch succeeded and the result was delivered
        """
        sequence = self.sequence_source()
        samples = await self.api_client.fetch_history(self.username, self.window_minutes)

        if samples is None:
            self.polls_failed += 1
            self.logger.warning(
                "Bitrate poll failed, will retry next interval",
                extra={'username': self.username}
            )
            return False

        self.polls_completed += 1
        self.on_refresh(samples, sequence)
        return True

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once()
            except Exception as e:
                self.logger.error(
                    f"Error in polling loop: {e}",
                    extra={'username': self.username},
                    exc_info=True
                )
