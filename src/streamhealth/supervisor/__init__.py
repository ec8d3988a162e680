"""
Session supervision for bitrate telemetry
"""

from .telemetry_controller import TelemetryController, TelemetrySession
