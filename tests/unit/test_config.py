"""
Unit Tests for Configuration Management

Tests cover:
- Endpoint URL construction
- YAML loading with partial and empty files
- Config lookup priority (explicit path, environment, defaults)
"""

import pytest
import yaml

from streamhealth.common.config import (
    StreamAPIConfig, LoggingConfig, StreamHealthConfig, get_config
)


class TestStreamAPIConfig:

    def test_defaults(self):
        config = StreamAPIConfig()
        assert config.api_base_url == "http://localhost:8000/api"
        assert config.request_timeout == 30.0
        assert config.ws_endpoint == "ws://localhost:8000/chat"

    @pytest.mark.parametrize("ws_url,namespace,expected", [
        ("ws://host:9000", "/chat", "ws://host:9000/chat"),
        ("ws://host:9000/", "/chat", "ws://host:9000/chat"),
        ("ws://host:9000", "chat", "ws://host:9000/chat"),
        ("ws://host:9000", "", "ws://host:9000"),
    ])
    def test_ws_endpoint_joins_namespace(self, ws_url, namespace, expected):
        config = StreamAPIConfig(ws_url=ws_url, ws_namespace=namespace)
        assert config.ws_endpoint == expected

    def test_stream_url(self):
        config = StreamAPIConfig(api_base_url="https://example.com/api/")
        assert config.stream_url("alice", "history") == \
            "https://example.com/api/streams/alice/bitrate/history"


class TestStreamHealthConfigYAML:

    def test_partial_yaml_keeps_defaults(self, tmp_path):
        path = tmp_path / "partial.yml"
        path.write_text(yaml.dump({'api': {'api_base_url': 'http://backend/api'}}))

        config = StreamHealthConfig.from_yaml(str(path))

        assert config.api.api_base_url == 'http://backend/api'
        assert config.api.ws_namespace == '/chat'
        assert config.logging == LoggingConfig()

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert StreamHealthConfig.from_yaml(str(path)) == StreamHealthConfig()

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text(yaml.dump({'api': {'no_such_option': 1}}))

        with pytest.raises(TypeError):
            StreamHealthConfig.from_yaml(str(path))

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "saved.yml"
        original = StreamHealthConfig(
            api=StreamAPIConfig(ws_url="wss://live.example.com", request_timeout=5.0),
            logging=LoggingConfig(level="DEBUG", json_format=False)
        )

        original.to_yaml(str(path))

        assert StreamHealthConfig.from_yaml(str(path)) == original


class TestGetConfig:

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "explicit.yml"
        path.write_text(yaml.dump({'logging': {'level': 'WARNING'}}))

        assert get_config(str(path)).logging.level == 'WARNING'

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yml"
        path.write_text(yaml.dump({'api': {'ws_namespace': '/telemetry'}}))
        monkeypatch.setenv('STREAMHEALTH_CONFIG', str(path))

        assert get_config().api.ws_namespace == '/telemetry'

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = get_config(str(tmp_path / "does_not_exist.yml"))
        assert config == StreamHealthConfig()
