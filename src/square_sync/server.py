"""
square-sync server.

Builds the store, registry, synchronization core and Socket.IO transport
from configuration, wires them together and runs until signalled.
"""

import argparse
import asyncio
import signal
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .rooms.registry import GroupRegistry
from .state.store import SharedStateStore
from .sync.core import SynchronizationCore
from .utils.config import SquareSyncConfig, load_config
from .utils.errors import ConfigurationError
from .utils.logging import get_logger, setup_logging
from .websocket.lifecycle import ConnectionLifecycleHandler
from .websocket.manager import SocketIOTransport


logger = get_logger("square-sync.server")


class SquareSyncServer:
    """One shared square, one room, one Socket.IO endpoint."""

    def __init__(self, config: Optional[SquareSyncConfig] = None):
        self.config = config or SquareSyncConfig()
        sync_config = self.config.sync

        self.store = SharedStateStore(
            x=sync_config.initial_x,
            y=sync_config.initial_y,
            width=sync_config.width,
            height=sync_config.height,
        )
        self.registry = GroupRegistry()
        self.transport = SocketIOTransport(
            cors_allowed_origins=self.config.server.cors_allowed_origins,
            client_path=self.config.server.client_path,
        )
        self.core = SynchronizationCore(
            self.store,
            self.registry,
            self.transport,
            default_group=sync_config.default_group,
            notify_rejections=sync_config.notify_rejections,
            queue_size=sync_config.queue_size,
        )
        self.lifecycle = ConnectionLifecycleHandler(self.core)

        self.transport.set_lifecycle_handler(self.lifecycle)
        self.transport.set_stats_provider(self.get_stats)

        self._stop_event: Optional[asyncio.Event] = None

    def get_stats(self) -> Dict[str, Any]:
        return {
            'sync': self.core.get_stats(),
            'rooms': self.registry.get_stats(),
        }

    async def start(self) -> None:
        await self.core.start()
        await self.transport.start(self.config.server.host, self.config.server.port)

    async def stop(self) -> None:
        await self.transport.stop()
        await self.core.stop()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> None:
        """Run until SIGINT/SIGTERM."""
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                # Windows event loops
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.request_stop))

        await self.start()
        logger.info(
            "square_sync_started",
            version=__version__,
            host=self.config.server.host,
            port=self.config.server.port,
            group=self.config.sync.default_group,
        )

        try:
            await self._stop_event.wait()
        finally:
            logger.info("shutdown_signal_received")
            await self.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="square-sync real-time state server")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--config", type=str, action="append", help="Config file path (repeatable)")
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to listen on (overrides PORT)")
    parser.add_argument("--log-level", type=str, help="Logging level")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed CLI options into a config override dict."""
    overrides: Dict[str, Any] = {}

    server: Dict[str, Any] = {}
    if args.host:
        server["host"] = args.host
    if args.port is not None:
        server["port"] = args.port
    if server:
        overrides["server"] = server

    if args.debug:
        overrides["debug"] = True
        overrides["logging"] = {"level": "DEBUG"}
    elif args.log_level:
        overrides["logging"] = {"level": args.log_level}

    return overrides


async def _serve(config_paths: Optional[List[str]], overrides: Dict[str, Any]) -> None:
    config = await load_config(config_paths=config_paths, extra_config=overrides)

    setup_logging(
        app_name=config.app_name,
        log_level=config.logging.level,
        log_dir=config.logging.directory,
        enable_json=config.logging.format == "json",
    )

    server = SquareSyncServer(config)
    await server.run()


def main(argv: Optional[List[str]] = None) -> None:
    """Run the square-sync server."""
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"square-sync v{__version__}")
        return

    try:
        asyncio.run(_serve(args.config, cli_overrides(args)))
    except KeyboardInterrupt:
        print("\nsquare-sync stopped by user", file=sys.stderr)
    except ConfigurationError as e:
        print(f"square-sync configuration error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
