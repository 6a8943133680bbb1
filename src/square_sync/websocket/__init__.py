"""Socket.IO transport and connection lifecycle."""

from .lifecycle import ConnectionLifecycleHandler
from .manager import SocketIOTransport, MOVEMENT_UPDATE_EVENT

__all__ = [
    "ConnectionLifecycleHandler",
    "SocketIOTransport",
    "MOVEMENT_UPDATE_EVENT",
]
