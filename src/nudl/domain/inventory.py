"""Build the label inventory for one reconciliation cycle."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import InventoryIncomplete, ModuleSourceUnavailable, ScanFailure
from .types import ABSENT, PRESENT, KeyMode, ModuleMatch

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .keys import KeyCodec
    from .ports import HardwareScanner, ModuleSource
    from .types import HardwareIdentifier, Inventory

log = getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class ScanSettings:
    """Filters applied to every scan.

    ``include`` restricts device output to the listed identifiers and only works
    with raw keys; the combination with ``KeyMode.HUMAN`` is rejected when the
    configuration is built.
    """

    mode: KeyMode = KeyMode.RAW
    exclude: tuple[str, ...] = ()
    include: tuple[HardwareIdentifier, ...] = ()
    modules: tuple[str, ...] = ()
    module_match: ModuleMatch = ModuleMatch.EXACT


class InventoryCollector:
    """Turns scanner output into label key/value pairs."""

    def __init__(
        self,
        scanner: HardwareScanner,
        codec: KeyCodec,
        settings: ScanSettings,
        module_source: ModuleSource | None = None,
    ) -> None:
        self.scanner = scanner
        self.codec = codec
        self.settings = settings
        self.module_source = module_source
        self._exclude = tuple(value.lower() for value in settings.exclude if value)

    def collect(self) -> Inventory:
        """Scan devices and modules.

        Both sub-scans always run. If either fails, :class:`InventoryIncomplete`
        is raised with the combined partial result.
        """

        inventory: Inventory = {}
        failures: list[ScanFailure | ModuleSourceUnavailable] = []

        try:
            inventory.update(self._collect_devices())
        except ScanFailure as exc:
            failures.append(exc)

        if self.settings.modules:
            try:
                inventory.update(self._collect_modules())
            except ModuleSourceUnavailable as exc:
                failures.append(exc)

        if failures:
            raise InventoryIncomplete(failures, inventory)
        return inventory

    def _collect_devices(self) -> Inventory:
        try:
            identifiers = self.scanner.scan()
        except ScanFailure:
            raise
        except Exception as exc:
            raise ScanFailure(f"could not scan usb devices: {exc}") from exc

        present = [identifier for identifier in identifiers if not self._excluded(identifier)]
        log.debug("Scanned %s usb devices, %s after exclusion", len(identifiers), len(present))

        if self.settings.include:
            return self._restrict_to_included(present)
        mode = self.settings.mode
        return {self.codec.encode(identifier, mode): PRESENT for identifier in present}

    def _restrict_to_included(self, present: Iterable[HardwareIdentifier]) -> Inventory:
        found = set(present)
        return {
            self.codec.encode_raw(identifier): PRESENT if identifier in found else ABSENT
            for identifier in self.settings.include
        }

    def _excluded(self, identifier: HardwareIdentifier) -> bool:
        if not self._exclude:
            return False
        description = self.scanner.describe(identifier).lower()
        return any(needle in description for needle in self._exclude)

    def _collect_modules(self) -> Inventory:
        if self.module_source is None:
            raise ModuleSourceUnavailable("no kernel module source configured")
        try:
            active = self.module_source.list_active_modules()
        except ModuleSourceUnavailable:
            raise
        except Exception as exc:
            raise ModuleSourceUnavailable(f"could not list kernel modules: {exc}") from exc

        return {
            self.codec.encode_module(name): PRESENT if self._module_loaded(name, active) else ABSENT
            for name in self.settings.modules
        }

    def _module_loaded(self, name: str, active: Sequence[str]) -> bool:
        if self.settings.module_match is ModuleMatch.SUBSTRING:
            return any(name in module for module in active)
        return name in active
