"""
Synchronization core for square-sync.

This package applies movement updates to the shared square in arrival
order and fans the result out to every member of the group.
"""

from .core import (
    SynchronizationCore,
    SyncCommand,
    CommandType,
    Broadcaster,
    UPDATED_MOVEMENT_EVENT,
    MOVEMENT_REJECTED_EVENT,
)
from .delta import UpdateDelta, parse_delta

__all__ = [
    'SynchronizationCore',
    'SyncCommand',
    'CommandType',
    'Broadcaster',
    'UPDATED_MOVEMENT_EVENT',
    'MOVEMENT_REJECTED_EVENT',
    'UpdateDelta',
    'parse_delta',
]
