"""
StreamHealth Monitor

Command-line entry point: runs a telemetry session for one stream and logs
every change of quality tier, connection state or loading state.
"""

import asyncio
import argparse
import signal
import sys
from typing import Optional

from .. import __version__
from ..common.config import get_config
from ..common.logging_config import setup_logging, ServiceLogger
from ..telemetry.models import TelemetrySnapshot
from .telemetry_controller import TelemetryController


class MonitorRunner:
    """
    Runs a TelemetryController until shutdown is requested
    """

    def __init__(self, username: str, config_path: str = None, show_stats: bool = False):
        self.config = get_config(config_path)
        self.username = username
        self.show_stats = show_stats
        self.logger = ServiceLogger("supervisor", "monitor")

        self.controller = TelemetryController(api_config=self.config.api)
        self.controller.add_listener(self.on_snapshot)
        self._last_key: Optional[tuple] = None

        self.shutdown_event = asyncio.Event()

    def on_snapshot(self, snapshot: TelemetrySnapshot):
        """Log snapshots whose displayed status changed"""
        key = (
            snapshot.username,
            snapshot.tier,
            snapshot.connection_state,
            snapshot.is_loading
        )
        if key == self._last_key:
            return
        self._last_key = key

        if snapshot.username is None:
            self.logger.info("Monitoring idle")
            return

        status = "waiting for data" if snapshot.is_loading else snapshot.tier.value
        self.logger.info(
            f"{snapshot.username}: {status} "
            f"(channel {snapshot.connection_state.value}, "
            f"{snapshot.sample_count} samples, current {round(snapshot.stats.current)}k, "
            f"avg {round(snapshot.stats.average)}k, peak {round(snapshot.stats.peak)}k)",
            extra={
                'username': snapshot.username,
                'tier': snapshot.tier.value,
                'state': snapshot.connection_state.value,
                'sample_count': snapshot.sample_count
            }
        )

    def request_shutdown(self):
        self.shutdown_event.set()

    async def run(self):
        """Main run loop"""
        self.logger.info(f"StreamHealth monitor starting for {self.username}")

        try:
            await self.controller.set_target(self.username, is_live=True, is_visible=True)

            if self.show_stats:
                stats = await self.controller.fetch_stats()
                if stats is None:
                    self.logger.warning("Bitrate stats unavailable")
                else:
                    self.logger.info("Bitrate stats", extra={'stats': stats})

            await self.shutdown_event.wait()

        except asyncio.CancelledError:
            self.logger.info("Received cancellation signal")
        finally:
            await self.controller.stop()
            self.logger.info("Shutdown complete")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='StreamHealth bitrate monitor')
    parser.add_argument('--username', required=True, help='Stream owner username')
    parser.add_argument('--config', help='Path to configuration file')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (overrides config)')
    parser.add_argument('--stats', action='store_true',
                        help='Fetch diagnostic bitrate stats once at startup')
    return parser


async def main(argv=None):
    """Main entry point"""
    args = build_parser().parse_args(argv)
    config = get_config(args.config)

    setup_logging(
        log_level=args.log_level or config.logging.level,
        log_file=config.logging.log_file,
        json_format=config.logging.json_format
    )

    logger = ServiceLogger("supervisor", "main")
    logger.info(f"StreamHealth monitor {__version__}")
    if args.config:
        logger.info(f"Using config: {args.config}")

    runner = MonitorRunner(args.username, config_path=args.config, show_stats=args.stats)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.request_shutdown)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda signum, frame: runner.request_shutdown())

    await runner.run()


def cli():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    cli()
