"""
square-sync - a real-time shared-state synchronization server.

A single authoritative square is moved by client deltas and rebroadcast
to every member of a Socket.IO room.
"""

__version__ = "0.1.0"
__author__ = "square-sync developers"

__all__ = [
    '__version__',
]
