"""Socket.IO transport for real-time square updates."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import socketio
from aiohttp import web

from ..utils.errors import SquareSyncError, TransportError
from ..utils.logging import get_logger
from .lifecycle import ConnectionLifecycleHandler

logger = get_logger("square-sync.websocket")

MOVEMENT_UPDATE_EVENT = "movementUpdate"


class SocketIOTransport:
    """Manages Socket.IO connections and message delivery."""

    def __init__(
        self,
        cors_allowed_origins: Union[str, List[str]] = "*",
        client_path: Optional[Path] = None,
    ):
        """Initialize the transport.

        Args:
            cors_allowed_origins: Origins accepted by the Socket.IO server
            client_path: HTML file served at ``/``, if any
        """
        self.sio = socketio.AsyncServer(
            async_mode='aiohttp',
            cors_allowed_origins=cors_allowed_origins,
            logger=False,
            engineio_logger=False
        )
        self.app = web.Application()
        self.sio.attach(self.app)

        self.client_path = Path(client_path) if client_path else None
        self.clients: Dict[str, Dict[str, Any]] = {}  # sid -> client info

        self._lifecycle: Optional[ConnectionLifecycleHandler] = None
        self._stats_provider = None
        self._runner: Optional[web.AppRunner] = None

        self._setup_handlers()
        self._setup_routes()

    def _setup_handlers(self):
        """Set up Socket.IO event handlers."""
        self.sio.on('connect', self._on_connect)
        self.sio.on('disconnect', self._on_disconnect)
        self.sio.on(MOVEMENT_UPDATE_EVENT, self._on_movement_update)

    def _setup_routes(self):
        self.app.router.add_get('/stats', self._handle_stats)
        if self.client_path:
            self.app.router.add_get('/', self._handle_index)

    def set_lifecycle_handler(self, handler: ConnectionLifecycleHandler):
        """Set the handler that receives connection events.

        Args:
            handler: Lifecycle handler wired to the synchronization core
        """
        self._lifecycle = handler

    def set_stats_provider(self, provider):
        """Set a callable returning extra stats for ``/stats``."""
        self._stats_provider = provider

    async def _on_connect(self, sid, environ, auth=None):
        """Handle client connection."""
        if not self._lifecycle:
            logger.error("no_lifecycle_handler", sid=sid)
            return False

        try:
            await self._lifecycle.on_connect(sid)
        except SquareSyncError as e:
            logger.error("connection_refused", sid=sid, error=str(e))
            return False

        self.clients[sid] = {
            'connected_at': datetime.now(timezone.utc),
            'remote_addr': environ.get('REMOTE_ADDR') if environ else None,
        }
        logger.info("client_connected", sid=sid)
        return True

    async def _on_disconnect(self, sid, reason=None):
        """Handle client disconnection."""
        self.clients.pop(sid, None)
        logger.info("client_disconnected", sid=sid, reason=str(reason) if reason else None)

        if not self._lifecycle:
            return

        try:
            await self._lifecycle.on_disconnect(sid)
        except SquareSyncError as e:
            logger.error("disconnect_cleanup_failed", sid=sid, error=str(e))

    async def _on_movement_update(self, sid, data=None):
        """Handle an inbound movement update."""
        if not self._lifecycle:
            logger.error("no_lifecycle_handler", sid=sid)
            return

        try:
            await self._lifecycle.on_movement_update(sid, data)
        except Exception as e:
            logger.error(
                "movement_update_failed",
                sid=sid,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    async def emit(self, event: str, data: Any, to: Iterable[str]) -> None:
        """Send an event to the given connections.

        Args:
            event: Event name
            data: Event data
            to: Connection ids to deliver to

        Raises:
            TransportError: If the Socket.IO server fails to queue the message
        """
        recipients = list(to)
        if not recipients:
            return

        try:
            await self.sio.emit(event, data, to=recipients)
        except Exception as e:
            raise TransportError(f"Failed to emit {event}: {e}", cause=e) from e

        logger.debug("event_emitted", event_name=event, recipients=len(recipients))

    async def _handle_stats(self, request: web.Request) -> web.Response:
        return web.json_response(self.get_stats())

    async def _handle_index(self, request: web.Request) -> web.StreamResponse:
        if not self.client_path.is_file():
            logger.error("client_file_missing", path=str(self.client_path))
            raise web.HTTPNotFound()
        return web.FileResponse(self.client_path)

    async def start(self, host: str = '0.0.0.0', port: int = 3000):
        """Start the HTTP + Socket.IO server.

        Args:
            host: Host to bind to
            port: Port to bind to
        """
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info("server_listening", host=host, port=port)

    async def stop(self):
        """Stop the server and release the port."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("server_stopped")

    def get_stats(self) -> dict:
        """Get server statistics.

        Returns:
            Server statistics dict
        """
        stats = {
            'connected_clients': len(self.clients),
            'clients': [
                {
                    'sid': sid,
                    'connected_at': info['connected_at'].isoformat(),
                }
                for sid, info in self.clients.items()
            ]
        }
        if self._stats_provider:
            stats.update(self._stats_provider())
        return stats
