"""Toolpacks runtime utilities."""

from .executor import Executor, ToolpackExecutionError
from .loader import Toolpack, ToolpackLoader, ToolpackValidationError

__all__ = [
    "Toolpack",
    "ToolpackLoader",
    "Executor",
    "ToolpackExecutionError",
    "ToolpackValidationError",
]
