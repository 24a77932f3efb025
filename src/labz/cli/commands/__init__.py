"""CLI commands."""

from .build import build, check, preview
from .catalog import bases, modules, blocks

__all__ = [
    "build",
    "check",
    "preview",
    "bases",
    "modules",
    "blocks",
]
