"""
Telemetry Controller

Composes the sample buffer, classifier, history loader, polling scheduler and
push channel into one subscription-scoped session and publishes immutable
snapshots of it.

All buffer mutations go through this controller on the event loop thread.
Two guards keep concurrent sources consistent:

- Every asynchronous operation is tagged with the session generation it was
  issued under; results for an older generation are dropped.
- Every write carries a sequence number taken when it was issued (fetch
  start for REST, arrival for push). A write older than the last applied
  write is dropped, so a slow poll cannot erase a newer push sample.
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..common.config import StreamAPIConfig, get_config
from ..common.constants import (
    BUFFER_CAPACITY,
    CLASSIFICATION_WINDOW,
    HISTORY_WINDOW_MINUTES,
    POLL_INTERVAL_SEC,
)
from ..common.logging_config import ServiceLogger, MetricsLogger
from ..ingestion.history_loader import HistoryLoader
from ..ingestion.polling_scheduler import PollingScheduler
from ..ingestion.push_channel import ConnectionManager
from ..ingestion.stream_api import StreamAPIClient
from ..telemetry.models import (
    ConnectionState,
    QualityTier,
    Sample,
    TelemetrySnapshot,
)
from ..telemetry.quality_classifier import classify
from ..telemetry.sample_buffer import SampleBuffer

SnapshotListener = Callable[[TelemetrySnapshot], None]


@dataclass
class TelemetrySession:
    """Mutable state of one subscription, owned by the controller"""
    generation: int
    username: str
    buffer: SampleBuffer
    tier: QualityTier = QualityTier.UNKNOWN
    is_loading: bool = True
    last_applied_sequence: int = -1
    connection: Optional[ConnectionManager] = None
    poller: Optional[PollingScheduler] = None
    tasks: List[asyncio.Task] = field(default_factory=list)


class TelemetryController:
    """
    Runs at most one telemetry session at a time

    Typical use from the presentation layer::

        controller = TelemetryController()
        controller.add_listener(render)
        await controller.set_target("alice", is_live=True, is_visible=True)
        ...
        await controller.stop()
    """

    def __init__(
        self,
        api_config: StreamAPIConfig = None,
        api_client: StreamAPIClient = None,
        connection_factory: Callable[..., ConnectionManager] = None,
        buffer_capacity: int = BUFFER_CAPACITY,
        classification_window: int = CLASSIFICATION_WINDOW,
        poll_interval: float = POLL_INTERVAL_SEC,
        history_minutes: int = HISTORY_WINDOW_MINUTES
    ):
        """
        Args:
            api_config: Endpoint configuration (defaults to get_config().api)
            api_client: REST client (defaults to one built from api_config)
            connection_factory: Builds the push channel manager; called with
                ``username, on_sample, on_state_change, api_config``
            buffer_capacity: Samples kept per session
            classification_window: Samples used for classification
            poll_interval: Seconds between REST refreshes
            history_minutes: History window fetched on start and each poll
        """
        self.api_config = api_config or get_config().api
        self.api_client = api_client or StreamAPIClient(self.api_config)
        self.connection_factory = connection_factory or ConnectionManager
        self.buffer_capacity = buffer_capacity
        self.classification_window = classification_window
        self.poll_interval = poll_interval
        self.history_minutes = history_minutes

        self.history_loader = HistoryLoader(self.api_client)

        self.logger = ServiceLogger("supervisor", "telemetry_controller")
        self.metrics = MetricsLogger("supervisor")

        self._session: Optional[TelemetrySession] = None
        self._generations = itertools.count(1)
        self._generation = 0
        self._sequences = itertools.count()
        self._listeners: List[SnapshotListener] = []
        self._snapshot = TelemetrySnapshot()
        # Held for the whole of every start/stop so session swaps never interleave
        self._lifecycle_lock = asyncio.Lock()

        self.discarded_writes = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> TelemetrySnapshot:
        """Latest published snapshot"""
        return self._snapshot

    @property
    def generation(self) -> int:
        """Identifier of the current session (0 before the first start)"""
        return self._generation

    @property
    def active_username(self) -> Optional[str]:
        return self._session.username if self._session else None

    def add_listener(self, listener: SnapshotListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _build_snapshot(self) -> TelemetrySnapshot:
        session = self._session
        if session is None:
            return TelemetrySnapshot()

        connection_state = (
            session.connection.state if session.connection
            else ConnectionState.DISCONNECTED
        )
        return TelemetrySnapshot(
            username=session.username,
            tier=session.tier,
            connection_state=connection_state,
            sample_count=len(session.buffer),
            is_loading=session.is_loading,
            stats=session.buffer.stats(),
            samples=session.buffer.snapshot()
        )

    def _publish(self):
        self._snapshot = self._build_snapshot()
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception as e:
                self.logger.error(f"Snapshot listener failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def set_target(
        self,
        username: Optional[str],
        is_live: bool = True,
        is_visible: bool = True
    ):
        """
        Apply the monitoring rule for the current view

        A session runs only while a username is set, the stream is live and
        monitoring is visible. A different username restarts the session.
        """
        async with self._lifecycle_lock:
            if not username or not is_live or not is_visible:
                await self._stop()
                return

            if self._session is not None and self._session.username == username:
                return

            await self._start(username)

    async def start(self, username: str):
        """
        Start a session for ``username``, tearing down any previous one

        The new session starts empty, DISCONNECTED, UNKNOWN and loading.
        Concurrent calls are serialised; the last one to run wins.
        """
        async with self._lifecycle_lock:
            await self._start(username)

    async def stop(self):
        """
        End the current session, if any

        Polling and pending fetches are cancelled synchronously, so no result
        of the ended session reaches a later one; the push channel is then
        torn down.
        """
        async with self._lifecycle_lock:
            await self._stop()

    async def _start(self, username: str):
        await self._stop()

        self._generation = next(self._generations)
        session = TelemetrySession(
            generation=self._generation,
            username=username,
            buffer=SampleBuffer(self.buffer_capacity)
        )
        self._session = session
        self.logger.info(
            f"Starting telemetry session for {username}",
            extra={'username': username, 'generation': session.generation}
        )
        self._publish()

        generation = session.generation

        history_sequence = next(self._sequences)
        session.tasks.append(asyncio.create_task(
            self._load_history(generation, history_sequence),
            name=f"bitrate_history:{username}"
        ))

        session.connection = self.connection_factory(
            username=username,
            on_sample=lambda sample: self._on_push_sample(generation, sample),
            on_state_change=lambda state: self._on_connection_state(generation, state),
            api_config=self.api_config
        )
        session.connection.connect()

        session.poller = PollingScheduler(
            self.api_client,
            username,
            on_refresh=lambda samples, seq: self._on_poll_refresh(generation, samples, seq),
            sequence_source=lambda: next(self._sequences),
            interval=self.poll_interval,
            window_minutes=self.history_minutes
        )
        session.poller.start()

    async def _stop(self):
        session = self._session
        if session is None:
            return

        self._session = None
        self._generation = next(self._generations)

        pending = list(session.tasks)
        if session.poller:
            poll_task = session.poller.stop()
            if poll_task is not None:
                pending.append(poll_task)
        for task in session.tasks:
            if not task.done():
                task.cancel()

        session.buffer.clear()
        session.tier = QualityTier.UNKNOWN
        self.logger.info(
            f"Stopped telemetry session for {session.username}",
            extra={'username': session.username, 'generation': session.generation}
        )
        self._publish()

        if session.connection:
            await session.connection.disconnect()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def fetch_stats(self) -> Optional[Dict[str, Any]]:
        """Diagnostic stats for the active stream, or None without a session"""
        if self._session is None:
            return None
        return await self.api_client.fetch_stats(self._session.username)

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def _current(self, generation: int) -> Optional[TelemetrySession]:
        session = self._session
        if session is None or session.generation != generation:
            return None
        return session

    def _accept_write(self, session: TelemetrySession, sequence: int, source: str) -> bool:
        if sequence < session.last_applied_sequence:
            self.discarded_writes += 1
            self.logger.debug(
                f"Discarded stale {source} write",
                extra={
                    'username': session.username,
                    'sequence': sequence,
                    'last_applied': session.last_applied_sequence
                }
            )
            return False

        session.last_applied_sequence = sequence
        return True

    def _reclassify(self, session: TelemetrySession):
        tier = classify(session.buffer.snapshot(), self.classification_window)
        if tier != session.tier:
            self.logger.info(
                f"Stream quality {session.tier.value} -> {tier.value}",
                extra={'username': session.username, 'tier': tier.value}
            )
            self.metrics.log_counter(
                "stream_quality_changes",
                labels={'username': session.username, 'tier': tier.value}
            )
        session.tier = tier
        self._publish()

    def apply_replace(self, generation: int, samples: List[Sample], sequence: int, source: str = "poll") -> bool:
        """
        Replace the session buffer wholesale

        Returns:
            True if the write was applied
        """
        session = self._current(generation)
        if session is None or not self._accept_write(session, sequence, source):
            return False

        session.buffer.replace(samples)
        self.metrics.log_gauge(
            "bitrate_samples",
            len(session.buffer),
            labels={'username': session.username, 'source': source}
        )
        self._reclassify(session)
        return True

    def apply_append(self, generation: int, sample: Sample, sequence: int) -> bool:
        """
        Append one pushed sample to the session buffer

        Returns:
            True if the write was applied
        """
        session = self._current(generation)
        if session is None or not self._accept_write(session, sequence, "push"):
            return False

        session.buffer.append(sample)
        self._reclassify(session)
        return True

    # ------------------------------------------------------------------
    # Source callbacks
    # ------------------------------------------------------------------

    async def _load_history(self, generation: int, sequence: int):
        session = self._current(generation)
        if session is None:
            return

        samples = await self.history_loader.load(session.username, self.history_minutes)

        session = self._current(generation)
        if session is None:
            self.logger.debug("History load finished after session ended")
            return

        session.is_loading = False
        if samples is None or not self.apply_replace(generation, samples, sequence, "history"):
            self._publish()

    def _on_push_sample(self, generation: int, sample: Sample):
        self.apply_append(generation, sample, next(self._sequences))

    def _on_poll_refresh(self, generation: int, samples: List[Sample], sequence: int):
        if not samples and self._current(generation) is not None:
            self.logger.info(
                "Poll returned no samples, quality unknown",
                extra={'username': self._session.username}
            )
        self.apply_replace(generation, samples, sequence, "poll")

    def _on_connection_state(self, generation: int, state: ConnectionState):
        if self._current(generation) is None:
            return
        self._publish()
