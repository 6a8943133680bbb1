"""Authoritative shared state."""

from .store import SharedStateStore, SquareSnapshot, now_ms

__all__ = [
    'SharedStateStore',
    'SquareSnapshot',
    'now_ms',
]
