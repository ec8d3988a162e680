"""
StreamHealth: live stream bitrate telemetry and quality classification

Key Components:
    - telemetry: sample model, bounded buffer and quality classifier
    - ingestion: REST client, history loader, polling scheduler, push channel
    - supervisor: session controller and monitor CLI
"""

__version__ = "0.1.0"
