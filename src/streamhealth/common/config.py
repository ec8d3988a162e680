"""
Centralized Configuration Management for StreamHealth

This module provides a unified interface for loading and accessing
monitor configuration from YAML files.
"""

import os
import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field


@dataclass
class StreamAPIConfig:
    """Configuration for the streaming backend endpoints"""

    # REST API
    api_base_url: str = "http://localhost:8000/api"
    request_timeout: float = 30.0  # seconds, total per REST request

    # Push channel
    ws_url: str = "ws://localhost:8000"
    ws_namespace: str = "/chat"

    @property
    def ws_endpoint(self) -> str:
        """Full WebSocket URL of the telemetry namespace"""
        namespace = self.ws_namespace or ""
        if namespace and not namespace.startswith("/"):
            namespace = "/" + namespace
        return self.ws_url.rstrip("/") + namespace

    def stream_url(self, username: str, resource: str) -> str:
        """REST URL of a per-stream bitrate resource (current, history, stats)"""
        return f"{self.api_base_url.rstrip('/')}/streams/{username}/bitrate/{resource}"


@dataclass
class LoggingConfig:
    """Configuration for log output"""

    level: str = "INFO"
    json_format: bool = True
    log_file: Optional[str] = None


@dataclass
class StreamHealthConfig:
    """Master configuration for StreamHealth"""

    api: StreamAPIConfig = field(default_factory=StreamAPIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'StreamHealthConfig':
        """Load configuration from YAML file"""
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        return cls(
            api=StreamAPIConfig(**config_dict.get('api', {})),
            logging=LoggingConfig(**config_dict.get('logging', {}))
        )

    def to_yaml(self, yaml_path: str) -> None:
        """Save configuration to YAML file"""
        config_dict = {
            'api': self.api.__dict__,
            'logging': self.logging.__dict__
        }

        with open(yaml_path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False)


def get_config(config_path: Optional[str] = None) -> StreamHealthConfig:
    """
    Get monitor configuration

    Priority:
    1. Provided config_path
    2. STREAMHEALTH_CONFIG environment variable
    3. config/streamhealth.yml
    4. Default configuration
    """
    if config_path is None:
        config_path = os.getenv('STREAMHEALTH_CONFIG')

    if config_path is None:
        default_paths = [
            Path(__file__).parent.parent.parent.parent / 'config' / 'streamhealth.yml',
            Path('config/streamhealth.yml')
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path and Path(config_path).exists():
        return StreamHealthConfig.from_yaml(config_path)

    return StreamHealthConfig()
