"""
Unit Tests for the Monitor Entry Point
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from streamhealth.common.logging_config import ROOT_LOGGER
from streamhealth.supervisor.main import MonitorRunner, build_parser
from streamhealth.telemetry.models import (
    BitrateStats, ConnectionState, QualityTier, TelemetrySnapshot
)


@pytest.fixture
def runner(tmp_path):
    return MonitorRunner("alice", config_path=str(tmp_path / "missing.yml"))


class TestParser:

    def test_requires_username(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_options(self):
        args = build_parser().parse_args(
            ['--username', 'alice', '--log-level', 'DEBUG', '--stats', '--config', 'x.yml']
        )
        assert args.username == 'alice'
        assert args.log_level == 'DEBUG'
        assert args.stats is True
        assert args.config == 'x.yml'

    def test_defaults(self):
        args = build_parser().parse_args(['--username', 'alice'])
        assert args.log_level is None
        assert args.stats is False


class TestSnapshotLogging:

    def test_logs_only_status_changes(self, runner, caplog):
        good = TelemetrySnapshot(
            username="alice", tier=QualityTier.GOOD,
            connection_state=ConnectionState.CONNECTED, sample_count=30,
            stats=BitrateStats(current=5000, average=4950, peak=5100)
        )

        with caplog.at_level(logging.INFO, logger=ROOT_LOGGER):
            runner.on_snapshot(good)
            runner.on_snapshot(TelemetrySnapshot(
                username="alice", tier=QualityTier.GOOD,
                connection_state=ConnectionState.CONNECTED, sample_count=31
            ))
            runner.on_snapshot(TelemetrySnapshot())

        messages = [r.getMessage() for r in caplog.records if r.name == "streamhealth.supervisor"]
        assert len(messages) == 2
        assert messages[0].startswith("alice: good (channel connected, 30 samples")
        assert messages[1] == "Monitoring idle"

    def test_loading_shown_as_waiting(self, runner, caplog):
        with caplog.at_level(logging.INFO, logger=ROOT_LOGGER):
            runner.on_snapshot(TelemetrySnapshot(username="alice", is_loading=True))

        assert "alice: waiting for data" in caplog.records[-1].getMessage()


class TestRunner:

    @pytest.mark.asyncio
    async def test_run_starts_and_stops_controller(self, runner):
        runner.controller = MagicMock()
        runner.controller.set_target = AsyncMock()
        runner.controller.stop = AsyncMock()
        runner.controller.fetch_stats = AsyncMock(return_value={'average': 4000})
        runner.show_stats = True
        runner.request_shutdown()

        await runner.run()

        runner.controller.set_target.assert_awaited_once_with("alice", is_live=True, is_visible=True)
        runner.controller.fetch_stats.assert_awaited_once()
        runner.controller.stop.assert_awaited_once()
