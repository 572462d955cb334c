"""Core toolpacks package."""

from .system import echo, which

__all__ = ["echo", "which"]
