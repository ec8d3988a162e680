"""
Stream Quality Classifier

Maps the most recent bitrate samples to a QualityTier. Classification is a
pure function of the last ``CLASSIFICATION_WINDOW`` samples; every update is
classified independently with no smoothing between calls.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..common.constants import (
    CLASSIFICATION_WINDOW,
    MIN_CLASSIFIABLE_SAMPLES,
    GOOD_MIN_AVERAGE_KBPS,
    INTERMITTENT_MIN_AVERAGE_KBPS,
    DROP_RATIO,
    SEVERE_DROP_RATIO,
    GOOD_MAX_DROP_FRACTION,
    GOOD_MAX_SEVERE_DROP_FRACTION,
    INTERMITTENT_MAX_DROP_FRACTION,
    INTERMITTENT_MAX_SEVERE_DROP_FRACTION,
)
from .models import QualityTier, Sample


@dataclass(frozen=True)
class WindowMetrics:
    """
    Bitrate statistics over the classification sub-window

    Drop fractions are the share of samples below 75% (drop) and
    50% (severe drop) of the window average.
    """
    sample_count: int
    average: float
    minimum: float
    maximum: float
    drop_fraction: float
    severe_drop_fraction: float


def assess_window(
    samples: Sequence[Sample],
    window: int = CLASSIFICATION_WINDOW
) -> Optional[WindowMetrics]:
    """
    Compute statistics over the last ``min(window, len(samples))`` samples

    Args:
        samples: Samples in arrival order, oldest first
        window: Sub-window size

    Returns:
        WindowMetrics, or None if the sub-window holds too few samples
    """
    recent = list(samples)[-window:] if window > 0 else []
    if len(recent) < MIN_CLASSIFIABLE_SAMPLES:
        return None

    values = np.fromiter((s.bitrate for s in recent), dtype=float)
    average = float(values.mean())

    return WindowMetrics(
        sample_count=len(values),
        average=average,
        minimum=float(values.min()),
        maximum=float(values.max()),
        drop_fraction=float(np.mean(values < DROP_RATIO * average)),
        severe_drop_fraction=float(np.mean(values < SEVERE_DROP_RATIO * average))
    )


def tier_for_metrics(metrics: Optional[WindowMetrics]) -> QualityTier:
    """First matching rule wins: GOOD, then INTERMITTENT, else POOR"""
    if metrics is None:
        return QualityTier.UNKNOWN

    if (metrics.average >= GOOD_MIN_AVERAGE_KBPS
            and metrics.drop_fraction < GOOD_MAX_DROP_FRACTION
            and metrics.severe_drop_fraction <= GOOD_MAX_SEVERE_DROP_FRACTION):
        return QualityTier.GOOD

    if (metrics.average >= INTERMITTENT_MIN_AVERAGE_KBPS
            and metrics.drop_fraction < INTERMITTENT_MAX_DROP_FRACTION
            and metrics.severe_drop_fraction < INTERMITTENT_MAX_SEVERE_DROP_FRACTION):
        return QualityTier.INTERMITTENT

    return QualityTier.POOR


def classify(
    samples: Sequence[Sample],
    window: int = CLASSIFICATION_WINDOW
) -> QualityTier:
    """
    Classify stream health from recent samples

    Args:
        samples: Samples in arrival order, oldest first
        window: Sub-window size

    Returns:
        QualityTier for the sub-window
    """
    return tier_for_metrics(assess_window(samples, window))
