"""Linux hardware enumeration through sysfs and procfs."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from nudl.domain.errors import ModuleSourceUnavailable, ScanFailure
from nudl.domain.types import HardwareIdentifier

if TYPE_CHECKING:
    from .usbids import UsbIdsDatabase

log = getLogger(__name__)

SYSFS_USB_DEVICES = Path("/sys/bus/usb/devices")
PROC_MODULES = Path("/proc/modules")


def _read_attribute(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace").strip() or None
    except OSError:
        return None


@dataclass(slots=True)
class SysfsUsbScanner:
    """Reads ``idVendor``/``idProduct`` of every device under ``/sys/bus/usb/devices``.

    Interface entries (``1-1:1.0``) carry no ids and are skipped, root hubs
    (``usb1``) are reported like any other device.
    """

    root: Path = SYSFS_USB_DEVICES
    names: UsbIdsDatabase | None = None
    _strings: dict[HardwareIdentifier, str] = field(default_factory=dict, init=False, repr=False)

    def scan(self) -> list[HardwareIdentifier]:
        try:
            entries = sorted(self.root.iterdir())
        except OSError as exc:
            raise ScanFailure(f"could not list {self.root}: {exc}") from exc

        found: list[HardwareIdentifier] = []
        strings: dict[HardwareIdentifier, str] = {}
        for entry in entries:
            vendor = _read_attribute(entry / "idVendor")
            product = _read_attribute(entry / "idProduct")
            if vendor is None or product is None:
                continue
            try:
                identifier = HardwareIdentifier(int(vendor, 16), int(product, 16))
            except ValueError:
                log.debug("Ignoring %s with malformed ids %r:%r", entry.name, vendor, product)
                continue
            found.append(identifier)
            descriptor = " ".join(
                value
                for value in (
                    _read_attribute(entry / "manufacturer"),
                    _read_attribute(entry / "product"),
                )
                if value
            )
            if descriptor:
                strings[identifier] = descriptor

        self._strings = strings
        return found

    def describe(self, identifier: HardwareIdentifier) -> str:
        """Database name, else the device's own descriptor strings, else the ids."""

        if self.names is not None:
            described = self.names.describe(identifier)
            if described is not None:
                return described
        return self._strings.get(identifier) or f"Unknown device {identifier}"


@dataclass(slots=True)
class ProcModuleSource:
    """Loaded kernel modules as listed in ``/proc/modules``."""

    path: Path = PROC_MODULES

    def list_active_modules(self) -> list[str]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ModuleSourceUnavailable(f"could not read {self.path}: {exc}") from exc
        return [line.split(maxsplit=1)[0] for line in content.splitlines() if line.strip()]
