"""
Telemetry Data Model

Immutable value types shared by the acquisition pipeline and the
presentation layer.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..common.constants import EPOCH_MILLIS_THRESHOLD


class QualityTier(Enum):
    """Stream health classification"""
    UNKNOWN = "unknown"            # fewer than 3 samples
    GOOD = "good"                  # avg >= 3000 kbps, few drops, no severe drops
    INTERMITTENT = "intermittent"  # avg >= 1500 kbps, moderate drops
    POOR = "poor"


class ConnectionState(Enum):
    """Push channel connection state"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def parse_timestamp(value: Any, default: Optional[datetime] = None) -> datetime:
    """
    Parse a sample timestamp permissively

    Accepts epoch seconds or milliseconds (numeric or numeric string) and
    ISO-8601 strings (a trailing 'Z' is allowed). Anything else falls back
    to ``default`` or the current UTC time.

    Args:
        value: Raw timestamp from the wire
        default: Fallback timestamp

    Returns:
        Timezone-aware datetime
    """
    fallback = default or datetime.now(timezone.utc)

    if value is None or isinstance(value, bool):
        return fallback

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return fallback
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
            except ValueError:
                return fallback
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            return fallback
        seconds = value / 1000.0 if value > EPOCH_MILLIS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return fallback

    return fallback


def parse_bitrate(value: Any) -> Optional[float]:
    """Return a finite non-negative bitrate, or None if the value is unusable"""
    if value is None or isinstance(value, bool):
        return None
    try:
        bitrate = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(bitrate) or bitrate < 0:
        return None
    return bitrate


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass(frozen=True)
class Sample:
    """One bitrate measurement (kbps)"""
    timestamp: datetime
    bitrate: float
    stream_id: Optional[str] = None
    username: Optional[str] = None

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        received_at: Optional[datetime] = None
    ) -> Optional['Sample']:
        """
        Build a sample from a wire record (push event or REST history entry)

        Missing optional fields are left absent. A record without a usable
        bitrate yields None.

        Args:
            data: Decoded JSON object
            received_at: Timestamp to use when the record has none

        Returns:
            Sample, or None if the record carries no valid bitrate
        """
        if not isinstance(data, dict):
            return None

        bitrate = parse_bitrate(data.get('bitrate'))
        if bitrate is None:
            return None

        return cls(
            timestamp=parse_timestamp(data.get('timestamp'), received_at),
            bitrate=bitrate,
            stream_id=_optional_str(data.get('streamId', data.get('stream_id'))),
            username=_optional_str(data.get('username'))
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire shape"""
        result = {
            'timestamp': self.timestamp.isoformat(),
            'bitrate': self.bitrate
        }
        if self.stream_id is not None:
            result['streamId'] = self.stream_id
        if self.username is not None:
            result['username'] = self.username
        return result


@dataclass(frozen=True)
class BitrateStats:
    """Summary of the sample buffer shown next to the graph"""
    current: float = 0.0
    average: float = 0.0
    peak: float = 0.0


@dataclass(frozen=True)
class TelemetrySnapshot:
    """
    Read-only view of a telemetry session for the presentation layer

    ``is_loading`` is True until the initial history load has finished.
    """
    username: Optional[str] = None
    tier: QualityTier = QualityTier.UNKNOWN
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    sample_count: int = 0
    is_loading: bool = False
    stats: BitrateStats = field(default_factory=BitrateStats)
    samples: Tuple[Sample, ...] = ()
