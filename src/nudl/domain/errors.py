"""Error taxonomy for scanning, key encoding and registry access."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .types import HardwareIdentifier


class NudlError(RuntimeError):
    """Base class for labeler errors."""


class KeyEncodingError(NudlError):
    """Raised by the key codec when a requested encoding is not possible."""


class NameNotFound(KeyEncodingError):
    """Vendor or product name could not be resolved for an identifier."""

    def __init__(self, identifier: HardwareIdentifier) -> None:
        super().__init__(f"no human readable name for {identifier}")
        self.identifier = identifier


class KeyTooLong(KeyEncodingError):
    """Encoded key exceeds the registry's length ceiling."""

    def __init__(self, key: str, limit: int) -> None:
        super().__init__(f"label key {key!r} is {len(key)} characters long (limit {limit})")
        self.key = key
        self.limit = limit


class InvalidKeyToken(KeyEncodingError):
    """Sanitized token does not start and end with an alphanumeric character."""

    def __init__(self, key: str) -> None:
        super().__init__(f"label key {key!r} must start and end with [A-Za-z0-9] after the prefix")
        self.key = key


class ScanFailure(NudlError):
    """The hardware enumeration backend failed."""


class ModuleSourceUnavailable(NudlError):
    """The kernel module source could not be read."""


class InventoryIncomplete(NudlError):
    """At least one sub-scan failed; ``partial`` holds what was collected."""

    def __init__(
        self,
        failures: Sequence[ScanFailure | ModuleSourceUnavailable],
        partial: Mapping[str, str],
    ) -> None:
        reasons = "; ".join(str(failure) for failure in failures)
        super().__init__(f"inventory incomplete: {reasons}")
        self.failures = tuple(failures)
        self.partial = dict(partial)


class RegistryError(NudlError):
    """Base class for failures reported by the registry port."""


class RecordNotFound(RegistryError):
    """The node record does not exist."""


class Conflict(RegistryError):
    """The node changed since it was read; the conditional patch was rejected."""


class TransportFailure(RegistryError):
    """Network, authentication or server error while talking to the registry."""


class CycleCancelled(NudlError):
    """Shutdown began before the cycle issued its next registry call."""


class StartupError(NudlError):
    """Irrecoverable failure while bringing the process up."""
