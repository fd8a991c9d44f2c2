"""Domain port definitions for adapters."""

from __future__ import annotations

from .hardware import HardwareScanner, ModuleSource, NameLookup
from .registry import NodeRegistry

__all__ = [
    "HardwareScanner",
    "ModuleSource",
    "NameLookup",
    "NodeRegistry",
]
