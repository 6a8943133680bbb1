"""Group ("room") membership tracking."""

import threading
from collections import defaultdict
from typing import Any, Dict, FrozenSet, List, Set

from ..utils.logging import get_logger


logger = get_logger("square-sync.rooms")


class GroupRegistry:
    """
    Tracks which connections belong to which named group.

    A group is created the first time anyone joins it and is kept for the
    lifetime of the registry, even once it is empty.
    """

    def __init__(self):
        self._groups: Dict[str, Set[str]] = {}  # group -> set of connection ids
        self._connection_groups: Dict[str, Set[str]] = defaultdict(set)  # connection id -> groups
        self._lock = threading.Lock()

    def join(self, group: str, connection_id: str) -> bool:
        """
        Add a connection to a group.

        Returns:
            True if the connection was added, False if it was already a member
        """
        with self._lock:
            members = self._groups.setdefault(group, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            self._connection_groups[connection_id].add(group)

        logger.debug("group_joined", group=group, connection_id=connection_id)
        return True

    def leave(self, group: str, connection_id: str) -> bool:
        """
        Remove a connection from a group.

        Returns:
            True if the connection was removed, False if it was not a member
        """
        with self._lock:
            members = self._groups.get(group)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            self._forget_locked(connection_id, group)

        logger.debug("group_left", group=group, connection_id=connection_id)
        return True

    def remove_connection(self, connection_id: str) -> List[str]:
        """
        Remove a connection from every group it belongs to.

        Returns:
            Names of the groups that were left
        """
        with self._lock:
            groups = sorted(self._connection_groups.pop(connection_id, set()))
            for group in groups:
                self._groups[group].discard(connection_id)

        if groups:
            logger.debug("connection_removed", connection_id=connection_id, groups=groups)
        return groups

    def members(self, group: str) -> FrozenSet[str]:
        """Snapshot of a group's members; empty for unknown groups."""
        with self._lock:
            return frozenset(self._groups.get(group, ()))

    def is_member(self, group: str, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._groups.get(group, ())

    def groups_for(self, connection_id: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._connection_groups.get(connection_id, ()))

    def group_names(self) -> List[str]:
        with self._lock:
            return sorted(self._groups)

    def get_stats(self) -> Dict[str, Any]:
        """Membership counts per group."""
        with self._lock:
            return {
                'groups': {name: len(members) for name, members in self._groups.items()},
                'connections': len(self._connection_groups),
                'total_memberships': sum(len(m) for m in self._groups.values()),
            }

    def _forget_locked(self, connection_id: str, group: str) -> None:
        groups = self._connection_groups.get(connection_id)
        if groups is None:
            return
        groups.discard(group)
        if not groups:
            del self._connection_groups[connection_id]
