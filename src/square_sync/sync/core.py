"""
Synchronization core.

Every mutation of the shared square or of group membership is turned into
a command and placed on one queue. A single worker task drains the queue,
so state is only ever touched by one mutator, and each accepted movement
update is applied and broadcast before the next command is looked at.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from ..rooms.registry import GroupRegistry
from ..state.store import SharedStateStore, SquareSnapshot, now_ms
from ..utils.errors import (
    ErrorContext,
    MalformedDeltaError,
    SyncNotRunningError,
)
from ..utils.logging import get_logger
from .delta import parse_delta


logger = get_logger("square-sync.sync")

UPDATED_MOVEMENT_EVENT = "updatedMovement"
MOVEMENT_REJECTED_EVENT = "movementRejected"


class Broadcaster(Protocol):
    """Send-to-many primitive provided by the transport."""

    async def emit(self, event: str, data: Any, to: Iterable[str]) -> None:
        ...


class CommandType(Enum):
    """Kinds of commands handled by the worker."""
    JOIN = "join"
    LEAVE = "leave"
    DISCONNECT = "disconnect"
    UPDATE = "update"


@dataclass
class SyncCommand:
    """A unit of work for the worker."""
    command_type: CommandType
    connection_id: str
    group: Optional[str] = None
    payload: Any = None
    future: Optional[asyncio.Future] = field(default=None, repr=False)


_STOP = object()


class SynchronizationCore:
    """
    Owns the shared state store and the group registry.

    Provides:
    - Serialized join / leave / disconnect handling
    - Apply-then-broadcast for movement updates, in arrival order
    - Rejection of malformed updates without touching state
    """

    def __init__(
        self,
        store: SharedStateStore,
        registry: GroupRegistry,
        broadcaster: Broadcaster,
        default_group: str = "room1",
        notify_rejections: bool = True,
        clock: Callable[[], int] = now_ms,
        queue_size: int = 0,
    ):
        """
        Initialize the synchronization core.

        Args:
            store: Shared state store holding the square
            registry: Group membership registry
            broadcaster: Transport used to fan out updates
            default_group: Group used when a command names none
            notify_rejections: Send a rejection notice to senders of malformed updates
            clock: Millisecond clock used to stamp updates
            queue_size: Maximum queued commands (0 for unbounded)
        """
        self.store = store
        self.registry = registry
        self.broadcaster = broadcaster
        self.default_group = default_group
        self.notify_rejections = notify_rejections
        self._clock = clock

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None
        self._running = False

        self.broadcasts_sent = 0
        self.rejected_updates = 0
        self.failed_broadcasts = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker task."""
        if self._running:
            return

        self._running = True
        self._worker = asyncio.create_task(self._process_commands())
        logger.info("sync_core_started", default_group=self.default_group)

    async def stop(self) -> None:
        """Stop accepting commands, finish the queued ones, then stop the worker."""
        if not self._running:
            return

        self._running = False
        await self._queue.put(_STOP)
        if self._worker:
            await self._worker
            self._worker = None

        logger.info(
            "sync_core_stopped",
            updates=self.store.update_count,
            broadcasts=self.broadcasts_sent,
            rejected=self.rejected_updates,
        )

    async def join(self, connection_id: str, group: Optional[str] = None) -> bool:
        """Add a connection to a group (the default group if none given)."""
        return await self._submit(SyncCommand(CommandType.JOIN, connection_id, group))

    async def leave(self, connection_id: str, group: Optional[str] = None) -> bool:
        """Remove a connection from a group (the default group if none given)."""
        return await self._submit(SyncCommand(CommandType.LEAVE, connection_id, group))

    async def disconnect(self, connection_id: str) -> list:
        """Remove a connection from every group; returns the groups left."""
        return await self._submit(SyncCommand(CommandType.DISCONNECT, connection_id))

    async def submit_update(
        self,
        connection_id: str,
        payload: Any,
        group: Optional[str] = None,
    ) -> Optional[SquareSnapshot]:
        """
        Apply a movement update and broadcast the result.

        Args:
            connection_id: Sender of the update
            payload: Raw ``movementUpdate`` body
            group: Group to broadcast to (the default group if none given)

        Returns:
            The post-update snapshot, or None if the update was rejected
        """
        return await self._submit(
            SyncCommand(CommandType.UPDATE, connection_id, group, payload)
        )

    def snapshot(self) -> SquareSnapshot:
        """Current square state."""
        return self.store.snapshot()

    def get_stats(self) -> Dict[str, Any]:
        return {
            'running': self._running,
            'queued_commands': self._queue.qsize(),
            'updates_applied': self.store.update_count,
            'broadcasts_sent': self.broadcasts_sent,
            'failed_broadcasts': self.failed_broadcasts,
            'rejected_updates': self.rejected_updates,
            'square': self.store.snapshot().to_payload(),
        }

    async def _submit(self, command: SyncCommand) -> Any:
        if not self._running:
            raise SyncNotRunningError(
                context=ErrorContext(
                    connection_id=command.connection_id,
                    component="sync",
                    operation=command.command_type.value,
                )
            )

        command.future = asyncio.get_running_loop().create_future()
        await self._queue.put(command)
        return await command.future

    async def _process_commands(self) -> None:
        """Drain the command queue one command at a time."""
        logger.debug("command_worker_started")

        while True:
            command = await self._queue.get()
            try:
                if command is _STOP:
                    break

                try:
                    result = await self._handle_command(command)
                except Exception as e:
                    logger.error(
                        "command_failed",
                        command=command.command_type.value,
                        connection_id=command.connection_id,
                        error=str(e),
                        exc_info=True,
                    )
                    if not command.future.done():
                        command.future.set_exception(e)
                else:
                    if not command.future.done():
                        command.future.set_result(result)
            finally:
                self._queue.task_done()

        logger.debug("command_worker_stopped")

    async def _handle_command(self, command: SyncCommand) -> Any:
        group = command.group or self.default_group

        if command.command_type is CommandType.JOIN:
            joined = self.registry.join(group, command.connection_id)
            if joined:
                logger.info("client_joined", connection_id=command.connection_id, group=group)
            return joined

        if command.command_type is CommandType.LEAVE:
            left = self.registry.leave(group, command.connection_id)
            if left:
                logger.info("client_left", connection_id=command.connection_id, group=group)
            return left

        if command.command_type is CommandType.DISCONNECT:
            groups = self.registry.remove_connection(command.connection_id)
            logger.info("client_removed", connection_id=command.connection_id, groups=groups)
            return groups

        return await self._apply_update(command.connection_id, command.payload, group)

    async def _apply_update(
        self,
        connection_id: str,
        payload: Any,
        group: str,
    ) -> Optional[SquareSnapshot]:
        try:
            delta = parse_delta(payload)
        except MalformedDeltaError as e:
            self.rejected_updates += 1
            e.context.connection_id = connection_id
            e.context.group = group
            e.context.component = "sync"
            e.context.operation = "movement_update"
            logger.warning(
                "delta_rejected",
                connection_id=connection_id,
                field=e.field,
                reason=e.constraint,
            )
            if self.notify_rejections:
                await self._send(MOVEMENT_REJECTED_EVENT, e.to_dict(), [connection_id])
            return None

        # All connections are joined on connect; a sender we don't know is
        # joined here rather than dropped.
        if self.registry.join(group, connection_id):
            logger.info("client_joined_on_update", connection_id=connection_id, group=group)

        snapshot = self.store.apply_delta(delta.x_update, delta.y_update, self._clock())
        members = self.registry.members(group)

        logger.debug(
            "update_applied",
            connection_id=connection_id,
            group=group,
            x=snapshot.x,
            y=snapshot.y,
            last_update=snapshot.last_update,
            recipients=len(members),
        )

        if members:
            if await self._send(UPDATED_MOVEMENT_EVENT, snapshot.to_payload(), sorted(members)):
                self.broadcasts_sent += 1

        return snapshot

    async def _send(self, event: str, data: Any, to: list) -> bool:
        """Deliver through the broadcaster; failures are logged, never raised."""
        try:
            await self.broadcaster.emit(event, data, to=to)
            return True
        except Exception as e:
            self.failed_broadcasts += 1
            logger.error(
                "broadcast_failed",
                event_name=event,
                recipients=len(to),
                error=str(e),
                error_type=type(e).__name__,
            )
        return False
