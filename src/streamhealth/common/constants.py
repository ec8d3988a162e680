"""
Telemetry Constants for StreamHealth

Fixed parameters of the bitrate acquisition and classification pipeline.
These are not user-tunable; components take them as constructor defaults.
"""

# Sample window sizes
BUFFER_CAPACITY = 60  # samples kept per session
CLASSIFICATION_WINDOW = 30  # most recent samples used for classification
MIN_CLASSIFIABLE_SAMPLES = 3

# Classification thresholds (bitrate in kbps)
GOOD_MIN_AVERAGE_KBPS = 3000.0
INTERMITTENT_MIN_AVERAGE_KBPS = 1500.0

DROP_RATIO = 0.75  # sample counts as a drop below 75% of window average
SEVERE_DROP_RATIO = 0.5  # severe drop below 50% of window average

GOOD_MAX_DROP_FRACTION = 0.15
GOOD_MAX_SEVERE_DROP_FRACTION = 0.0
INTERMITTENT_MAX_DROP_FRACTION = 0.35
INTERMITTENT_MAX_SEVERE_DROP_FRACTION = 0.10

# REST refresh
POLL_INTERVAL_SEC = 10.0
HISTORY_WINDOW_MINUTES = 5

# Push channel
RECONNECT_ATTEMPTS = 3
RECONNECT_DELAY_SEC = 2.0
CONNECT_TIMEOUT_SEC = 10.0

# Push channel events
EVENT_SUBSCRIBE = "subscribe_bitrate"
EVENT_UNSUBSCRIBE = "unsubscribe_bitrate"
EVENT_BITRATE_UPDATE = "bitrate_update"

# Epoch values above this are treated as milliseconds
EPOCH_MILLIS_THRESHOLD = 1e11
