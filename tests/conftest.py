"""
Pytest configuration and shared fixtures for square-sync tests.
"""

import pytest
from pathlib import Path
from typing import Any, AsyncGenerator, Iterable, List, Tuple

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from square_sync.rooms.registry import GroupRegistry
from square_sync.state.store import SharedStateStore
from square_sync.sync.core import SynchronizationCore
from square_sync.utils.errors import TransportError
from square_sync.utils.logging import setup_logging


class RecordingBroadcaster:
    """Transport double that records every emit."""

    def __init__(self):
        self.sent: List[Tuple[str, Any, List[str]]] = []
        self.fail_next = False

    async def emit(self, event: str, data: Any, to: Iterable[str]) -> None:
        if self.fail_next:
            self.fail_next = False
            raise TransportError("socket gone")
        self.sent.append((event, data, list(to)))

    def received_by(self, connection_id: str, event: str = "updatedMovement") -> List[Any]:
        """Payloads of ``event`` delivered to one connection, in order."""
        return [data for name, data, to in self.sent if name == event and connection_id in to]

    def events(self, event: str = "updatedMovement") -> List[Tuple[Any, List[str]]]:
        return [(data, to) for name, data, to in self.sent if name == event]


class StepClock:
    """Millisecond clock that advances by a fixed step on every read."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 5):
        self.value = start
        self.step = step

    def __call__(self) -> int:
        self.value += self.step
        return self.value


@pytest.fixture
def store() -> SharedStateStore:
    return SharedStateStore(now=1_700_000_000_000)


@pytest.fixture
def registry() -> GroupRegistry:
    return GroupRegistry()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
async def core(store, registry, broadcaster, clock) -> AsyncGenerator[SynchronizationCore, None]:
    """A running synchronization core with a recording broadcaster."""
    sync_core = SynchronizationCore(store, registry, broadcaster, clock=clock)
    await sync_core.start()
    yield sync_core
    await sync_core.stop()


# Logging setup for tests
setup_logging(log_level="DEBUG", enable_json=False)
