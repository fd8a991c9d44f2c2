"""Value types shared by the reconciliation components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

PRESENT = "true"
ABSENT = "false"

type Inventory = dict[str, str]


class KeyMode(StrEnum):
    RAW = "raw"
    HUMAN = "human"


class ModuleMatch(StrEnum):
    EXACT = "exact"
    SUBSTRING = "substring"


@dataclass(slots=True, frozen=True, order=True)
class HardwareIdentifier:
    """USB vendor/product code pair."""

    vendor: int
    product: int

    def __post_init__(self) -> None:
        for name in ("vendor", "product"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"{name} code {value!r} is not a 16-bit value")

    @classmethod
    def parse(cls, value: str) -> HardwareIdentifier:
        """Parse ``vvvv:pppp`` or ``vvvv_pppp`` hexadecimal notation."""

        separator = ":" if ":" in value else "_"
        vendor, sep, product = value.strip().partition(separator)
        if not sep or len(vendor) != 4 or len(product) != 4:
            raise ValueError(f"Invalid hardware identifier: {value!r}")
        try:
            return cls(int(vendor, 16), int(product, 16))
        except ValueError as exc:
            raise ValueError(f"Invalid hardware identifier: {value!r}") from exc

    def __str__(self) -> str:
        return f"{self.vendor:04x}:{self.product:04x}"


@dataclass(slots=True, frozen=True)
class NodeRecord:
    """Snapshot of a node as returned by the registry."""

    name: str
    resource_version: str | None
    labels: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
