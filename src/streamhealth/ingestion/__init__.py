"""
Bitrate telemetry acquisition

Key Components:
    - stream_api: REST client for current/history/stats endpoints
    - history_loader: one-shot buffer seeding on session start
    - polling_scheduler: fixed-interval REST refresh
    - push_channel: WebSocket subscription with bounded reconnect
"""

from .history_loader import HistoryLoader
from .polling_scheduler import PollingScheduler
from .push_channel import ConnectionManager
from .stream_api import StreamAPIClient
