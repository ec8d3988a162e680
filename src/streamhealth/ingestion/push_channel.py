"""
Push Channel Connection Manager

Maintains the WebSocket subscription that delivers ``bitrate_update`` events
for one stream. Messages are JSON envelopes ``{"type": ..., "data": ...}``.

State machine:

    DISCONNECTED --connect()--> CONNECTING --open--> CONNECTED (subscribe sent)
    CONNECTED --error/close--> DISCONNECTED --delay--> CONNECTING (bounded)

Transport failures only ever show up as a transition to DISCONNECTED.
"""

import asyncio
import aiohttp
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..common.config import StreamAPIConfig, get_config
from ..common.constants import (
    CONNECT_TIMEOUT_SEC,
    RECONNECT_ATTEMPTS,
    RECONNECT_DELAY_SEC,
    EVENT_SUBSCRIBE,
    EVENT_UNSUBSCRIBE,
    EVENT_BITRATE_UPDATE,
)
from ..common.logging_config import ServiceLogger
from ..telemetry.models import ConnectionState, Sample


class ConnectionManager:
    """
    Owns the push channel lifecycle for a single stream subscription

    Reconnection after a failed open or a dropped connection is attempted at
    most ``reconnect_attempts`` times in a row, ``reconnect_delay`` seconds
    apart. A successful open resets the count. Once the attempts are used up
    the manager stays DISCONNECTED until ``connect()`` is called again.
    """

    def __init__(
        self,
        username: str,
        on_sample: Callable[[Sample], None],
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
        api_config: StreamAPIConfig = None,
        reconnect_attempts: int = RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
        connect_timeout: float = CONNECT_TIMEOUT_SEC,
        session_factory: Callable[[], Any] = None
    ):
        """
        Args:
            username: Stream owner username to subscribe to
            on_sample: Called with each sample received from the channel
            on_state_change: Called on every connection state transition
            api_config: Endpoint configuration (defaults to get_config().api)
            reconnect_attempts: Consecutive reconnection attempts allowed
            reconnect_delay: Seconds between attempts
            connect_timeout: Seconds allowed per connect attempt
            session_factory: Creates the HTTP session (aiohttp.ClientSession)
        """
        config = api_config or get_config().api

        self.username = username
        self.url = config.ws_endpoint
        self.on_sample = on_sample
        self.on_state_change = on_state_change
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.connect_timeout = connect_timeout
        self._session_factory = session_factory or aiohttp.ClientSession

        self.logger = ServiceLogger("ingestion", "push_channel")

        self._state = ConnectionState.DISCONNECTED
        self._session = None
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._closing = False

        self.connect_attempts = 0
        self.messages_received = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def _set_state(self, state: ConnectionState):
        if state == self._state:
            return

        previous = self._state
        self._state = state
        self.logger.info(
            f"Push channel {previous.value} -> {state.value}",
            extra={'username': self.username, 'state': state.value}
        )

        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception as e:
                self.logger.error(f"State change handler failed: {e}", exc_info=True)

    def connect(self):
        """Start the connection loop on the running event loop"""
        if self._task is not None and not self._task.done():
            self.logger.warning(
                "Push channel already running",
                extra={'username': self.username}
            )
            return

        self._closing = False
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.create_task(
            self._run(),
            name=f"bitrate_channel:{self.username}"
        )

    async def _run(self):
        retries = 0

        try:
            while not self._closing:
                self._set_state(ConnectionState.CONNECTING)

                if await self._open():
                    retries = 0
                    self._set_state(ConnectionState.CONNECTED)
                    if await self.send(EVENT_SUBSCRIBE, {'username': self.username}):
                        await self._receive()
                    await self._close_socket()

                self._set_state(ConnectionState.DISCONNECTED)

                if self._closing:
                    break

                if retries >= self.reconnect_attempts:
                    self.logger.error(
                        f"Max reconnection attempts ({self.reconnect_attempts}) reached",
                        extra={'username': self.username}
                    )
                    break

                retries += 1
                self.logger.info(
                    f"Reconnection attempt {retries}/{self.reconnect_attempts} "
                    f"in {self.reconnect_delay}s",
                    extra={'username': self.username}
                )
                await asyncio.sleep(self.reconnect_delay)
        finally:
            await self._close_socket()
            await self._close_session()
            self._set_state(ConnectionState.DISCONNECTED)

    async def _open(self) -> bool:
        """
        Open the WebSocket

        Returns:
            True if the socket is open
        """
        self.connect_attempts += 1
        self.logger.info(f"Connecting to {self.url}", extra={'username': self.username})

        try:
            if self._session is None:
                self._session = self._session_factory()

            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self.url),
                timeout=self.connect_timeout
            )
            return True

        except asyncio.TimeoutError:
            self.logger.error(
                f"Push channel connect timed out after {self.connect_timeout}s",
                extra={'username': self.username}
            )
        except aiohttp.ClientError as e:
            self.logger.error(
                f"Push channel connect failed: {e}",
                extra={'username': self.username}
            )
        except OSError as e:
            self.logger.error(
                f"Push channel socket error: {e}",
                extra={'username': self.username}
            )

        self._ws = None
        return False

    async def _receive(self):
        """Read messages until the socket closes or errors"""
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.logger.error(
                        f"Push channel error: {self._ws.exception()}",
                        extra={'username': self.username}
                    )
                    break
        except (aiohttp.ClientError, OSError) as e:
            self.logger.error(
                f"Push channel read failed: {e}",
                extra={'username': self.username}
            )

        if not self._closing:
            self.logger.warning("Push channel closed", extra={'username': self.username})

    def _handle_message(self, raw: str):
        """Dispatch one inbound envelope"""
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            self.logger.warning(f"JSON decode error: {e}", extra={'username': self.username})
            return

        if not isinstance(envelope, dict):
            return

        msg_type = envelope.get('type', '')
        if msg_type != EVENT_BITRATE_UPDATE:
            self.logger.debug(f"Ignoring message type: {msg_type}")
            return

        sample = Sample.from_dict(
            envelope.get('data') or {},
            received_at=datetime.now(timezone.utc)
        )
        if sample is None:
            self.logger.debug(
                "Dropped bitrate update without a usable bitrate",
                extra={'username': self.username}
            )
            return

        self.messages_received += 1
        try:
            self.on_sample(sample)
        except Exception as e:
            self.logger.error(f"Sample handler failed: {e}", exc_info=True)

    async def send(self, event: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """
        Send an event envelope

        Returns:
            True if the message was written to an open socket
        """
        if self._ws is None or self._ws.closed:
            return False

        message = {'type': event}
        if data is not None:
            message['data'] = data

        try:
            await self._ws.send_json(message)
            return True
        except (aiohttp.ClientError, OSError, RuntimeError) as e:
            self.logger.warning(
                f"Failed to send {event}: {e}",
                extra={'username': self.username}
            )
            return False

    async def _close_socket(self):
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError) as e:
                self.logger.debug(f"Error closing push channel: {e}")

    async def _close_session(self):
        session, self._session = self._session, None
        if session is not None:
            try:
                await session.close()
            except (aiohttp.ClientError, OSError) as e:
                self.logger.debug(f"Error closing push channel session: {e}")

    async def disconnect(self):
        """
        Tear down the channel

        Sends ``unsubscribe_bitrate`` if connected, stops reconnection and
        forces the state to DISCONNECTED. Safe to call repeatedly.
        """
        self._closing = True

        if self.is_connected:
            await self.send(EVENT_UNSUBSCRIBE)

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        await self._close_socket()
        await self._close_session()
        self._set_state(ConnectionState.DISCONNECTED)
