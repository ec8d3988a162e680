"""
Bounded Sample Buffer

Ordered FIFO store of the most recent bitrate samples for one session.
"""

from collections import deque
from typing import Deque, Iterable, Optional, Tuple

import numpy as np

from ..common.constants import BUFFER_CAPACITY
from .models import BitrateStats, Sample


class SampleBuffer:
    """
    Bounded ordered store of recent telemetry samples.

    Insertion order is arrival/fetch order. ``append`` evicts the oldest
    sample once capacity is exceeded; ``replace`` adopts a new sequence
    wholesale, keeping only its most recent ``capacity`` entries.
    """

    def __init__(self, capacity: int = BUFFER_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._samples: Deque[Sample] = deque(maxlen=capacity)

    def append(self, sample: Sample) -> None:
        self._samples.append(sample)

    def replace(self, samples: Iterable[Sample]) -> None:
        self._samples = deque(samples, maxlen=self.capacity)

    def clear(self) -> None:
        self._samples.clear()

    def snapshot(self) -> Tuple[Sample, ...]:
        """Immutable copy of the buffer contents, oldest first"""
        return tuple(self._samples)

    def latest(self) -> Optional[Sample]:
        return self._samples[-1] if self._samples else None

    def stats(self) -> BitrateStats:
        """Current, average and peak bitrate over the whole buffer"""
        if not self._samples:
            return BitrateStats()

        values = np.fromiter((s.bitrate for s in self._samples), dtype=float)
        return BitrateStats(
            current=float(values[-1]),
            average=float(values.mean()),
            peak=float(values.max())
        )

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self.snapshot())
