"""
Telemetry data model, sample buffer and quality classifier
"""

from .models import (
    BitrateStats,
    ConnectionState,
    QualityTier,
    Sample,
    TelemetrySnapshot,
)
from .quality_classifier import WindowMetrics, assess_window, classify
from .sample_buffer import SampleBuffer
