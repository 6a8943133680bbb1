"""Connection lifecycle handling: connect, disconnect and inbound updates."""

from typing import Any, Optional

from ..state.store import SquareSnapshot
from ..sync.core import SynchronizationCore
from ..utils.logging import get_logger


logger = get_logger("square-sync.lifecycle")


class ConnectionLifecycleHandler:
    """Maps transport events onto synchronization core commands."""

    def __init__(self, core: SynchronizationCore, default_group: Optional[str] = None):
        """
        Initialize the handler.

        Args:
            core: Synchronization core that owns the shared state
            default_group: Group every connection joins (the core's default if None)
        """
        self.core = core
        self.default_group = default_group or core.default_group

    async def on_connect(self, connection_id: str) -> None:
        """Join a new connection to the default group."""
        await self.core.join(connection_id, self.default_group)

    async def on_disconnect(self, connection_id: str) -> None:
        """
        Drop a connection's memberships.

        The transport may keep the socket around for a reconnect, but the
        connection stops receiving broadcasts immediately.
        """
        await self.core.disconnect(connection_id)

    async def on_movement_update(self, connection_id: str, data: Any) -> Optional[SquareSnapshot]:
        """Forward a ``movementUpdate`` payload to the core."""
        return await self.core.submit_update(connection_id, data, self.default_group)
