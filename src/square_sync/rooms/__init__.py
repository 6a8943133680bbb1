"""Group membership."""

from .registry import GroupRegistry

__all__ = ['GroupRegistry']
