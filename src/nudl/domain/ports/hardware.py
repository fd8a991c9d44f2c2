"""Ports for discovering hardware attached to the local machine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nudl.domain.types import HardwareIdentifier


@runtime_checkable
class HardwareScanner(Protocol):
    """Enumerates attached devices."""

    def scan(self) -> Sequence[HardwareIdentifier]:
        """Return every attached device; raise on backend failure."""
        ...

    def describe(self, identifier: HardwareIdentifier) -> str:
        """Return a human readable description used for filtering."""
        ...


@runtime_checkable
class NameLookup(Protocol):
    """Resolves vendor and product names for an identifier."""

    def resolve_name(self, identifier: HardwareIdentifier) -> tuple[str, str] | None: ...


@runtime_checkable
class ModuleSource(Protocol):
    """Lists the kernel modules currently loaded."""

    def list_active_modules(self) -> Sequence[str]: ...


__all__ = ["HardwareScanner", "ModuleSource", "NameLookup"]
