"""
Stream Bitrate REST Client

Read-only access to the streaming backend's per-stream bitrate endpoints:

    GET /streams/{username}/bitrate/current
    GET /streams/{username}/bitrate/history?minutes={n}
    GET /streams/{username}/bitrate/stats

Every fetch returns None on failure; errors are logged, never raised.
"""

import asyncio
import aiohttp
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..common.config import StreamAPIConfig, get_config
from ..common.constants import HISTORY_WINDOW_MINUTES
from ..common.logging_config import ServiceLogger
from ..telemetry.models import Sample


class StreamAPIClient:
    """
    Client for the bitrate REST endpoints of one streaming backend
    """

    def __init__(self, api_config: StreamAPIConfig = None):
        """
        Args:
            api_config: Endpoint configuration (defaults to get_config().api)
        """
        self.config = api_config or get_config().api
        self.logger = ServiceLogger("ingestion", "stream_api")

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Any]:
        """
        GET a JSON document

        Returns:
            Decoded JSON body, or None if the request failed
        """
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, params=params) as response:
                    if response.status != 200:
                        self.logger.warning(
                            f"HTTP {response.status} from {url}",
                            extra={'status_code': response.status, 'url': url}
                        )
                        return None

                    return await response.json()

        except asyncio.TimeoutError:
            self.logger.error(f"Timeout fetching {url}")
            return None
        except aiohttp.ClientError as e:
            self.logger.error(f"HTTP error fetching {url}: {e}")
            return None
        except ValueError as e:
            self.logger.error(f"Invalid JSON from {url}: {e}")
            return None

    async def fetch_current(self, username: str) -> Optional[Sample]:
        """
        Fetch the stream's current bitrate

        The returned sample is timestamped at fetch time.

        Args:
            username: Stream owner username

        Returns:
            Sample, or None if the fetch failed or carried no bitrate
        """
        fetched_at = datetime.now(timezone.utc)
        data = await self._get_json(self.config.stream_url(username, "current"))
        if not isinstance(data, dict):
            return None

        record = dict(data)
        record['timestamp'] = fetched_at
        sample = Sample.from_dict(record, received_at=fetched_at)

        if sample is None:
            self.logger.debug(
                "Current bitrate response had no usable bitrate",
                extra={'username': username}
            )
        return sample

    async def fetch_history(
        self,
        username: str,
        minutes: int = HISTORY_WINDOW_MINUTES
    ) -> Optional[List[Sample]]:
        """
        Fetch recent bitrate history

        Args:
            username: Stream owner username
            minutes: History window in minutes

        Returns:
            Samples oldest first (possibly empty), or None if the fetch failed
        """
        data = await self._get_json(
            self.config.stream_url(username, "history"),
            params={'minutes': minutes}
        )
        if data is None:
            return None

        if isinstance(data, dict):
            records = data.get('history') or []
        elif isinstance(data, list):
            records = data
        else:
            self.logger.warning(
                f"Unexpected history payload type: {type(data).__name__}",
                extra={'username': username}
            )
            return None

        if not isinstance(records, list):
            return None

        received_at = datetime.now(timezone.utc)
        samples = []
        skipped = 0
        for record in records:
            sample = Sample.from_dict(record, received_at=received_at)
            if sample is None:
                skipped += 1
                continue
            samples.append(sample)

        if skipped:
            self.logger.debug(
                f"Skipped {skipped} history records without a usable bitrate",
                extra={'username': username}
            )

        return samples

    async def fetch_stats(self, username: str) -> Optional[Dict[str, Any]]:
        """
        Fetch diagnostic bitrate statistics (not used for classification)

        Args:
            username: Stream owner username

        Returns:
            Stats document, or None if the fetch failed
        """
        data = await self._get_json(self.config.stream_url(username, "stats"))
        return data if isinstance(data, dict) else None
