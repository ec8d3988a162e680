"""
History Loader

One-shot fetch that seeds a new session's sample buffer. Falls back to the
current-value endpoint when the backend has no history yet.
"""

from typing import List, Optional

from ..common.constants import HISTORY_WINDOW_MINUTES
from ..common.logging_config import ServiceLogger
from ..telemetry.models import Sample
from .stream_api import StreamAPIClient


class HistoryLoader:
    """
    Seeds the sample buffer once per subscription start

    The loader only fetches; the session owner applies the result so that
    every buffer mutation stays on one writer.
    """

    def __init__(self, api_client: StreamAPIClient):
        self.api_client = api_client
        self.logger = ServiceLogger("ingestion", "history_loader")

    async def load(
        self,
        username: str,
        window_minutes: int = HISTORY_WINDOW_MINUTES
    ) -> Optional[List[Sample]]:
        """
        Fetch the samples to seed the buffer with

        Args:
            username: Stream owner username
            window_minutes: History window in minutes

        Returns:
            History samples if the backend has any; otherwise a single sample
            from the current-value endpoint; None if there is nothing to seed
            (fetch failure or no current value). None leaves the buffer as is.
        """
        history = await self.api_client.fetch_history(username, window_minutes)

        if history is None:
            self.logger.warning(
                "History fetch failed, waiting for live data",
                extra={'username': username}
            )
            return None

        if history:
            self.logger.info(
                f"Loaded {len(history)} history samples",
                extra={'username': username, 'sample_count': len(history)}
            )
            return history

        self.logger.info(
            "No bitrate history yet, falling back to current value",
            extra={'username': username}
        )
        current = await self.api_client.fetch_current(username)
        if current is None:
            return None

        return [current]
