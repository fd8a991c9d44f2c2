"""Vendor and product names from the ``usb.ids`` database.

The file lists vendors as ``vvvv  Vendor Name`` lines followed by tab-indented
``pppp  Product Name`` lines. Sections after the vendor list (device classes,
HID tables, ...) start with a keyword and are ignored.
"""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nudl.domain.types import HardwareIdentifier

log = getLogger(__name__)

DEFAULT_USB_IDS_PATHS = (
    Path("/usr/share/hwdata/usb.ids"),
    Path("/usr/share/misc/usb.ids"),
    Path("/usr/share/usb.ids"),
    Path("/var/lib/usbutils/usb.ids"),
)


def _split_entry(line: str) -> tuple[int, str] | None:
    code, _, name = line.strip().partition(" ")
    if len(code) != 4:
        return None
    try:
        return int(code, 16), name.strip()
    except ValueError:
        return None


class UsbIdsDatabase:
    """In-memory vendor/product name table."""

    def __init__(
        self,
        vendors: dict[int, str] | None = None,
        products: dict[tuple[int, int], str] | None = None,
    ) -> None:
        self.vendors = vendors or {}
        self.products = products or {}

    def __len__(self) -> int:
        return len(self.vendors)

    @classmethod
    def parse(cls, lines: Iterable[str]) -> UsbIdsDatabase:
        vendors: dict[int, str] = {}
        products: dict[tuple[int, int], str] = {}
        vendor: int | None = None

        for raw in lines:
            line = raw.rstrip("\n")
            if not line.strip() or line.startswith("#"):
                continue
            if line.startswith("\t\t"):
                # interface lines
                continue
            if line.startswith("\t"):
                entry = _split_entry(line)
                if vendor is not None and entry is not None:
                    products[(vendor, entry[0])] = entry[1]
                continue
            entry = _split_entry(line)
            if entry is None:
                # first non-vendor section ends the vendor list
                if vendors:
                    break
                vendor = None
                continue
            vendor, name = entry
            vendors[vendor] = name

        return cls(vendors, products)

    @classmethod
    def load(cls, path: Path | None = None) -> UsbIdsDatabase:
        """Load ``path`` or the first system database found; empty if none exists."""

        candidates = (path,) if path is not None else DEFAULT_USB_IDS_PATHS
        for candidate in candidates:
            try:
                with candidate.open(encoding="utf-8", errors="replace") as handle:
                    database = cls.parse(handle)
            except OSError:
                continue
            log.info("Loaded %s usb vendors from %s", len(database), candidate)
            return database
        log.warning("No usb.ids database found; human readable names are unavailable")
        return cls()

    def vendor_name(self, vendor: int) -> str | None:
        return self.vendors.get(vendor)

    def product_name(self, vendor: int, product: int) -> str | None:
        return self.products.get((vendor, product))

    def resolve_name(self, identifier: HardwareIdentifier) -> tuple[str, str] | None:
        vendor = self.vendor_name(identifier.vendor)
        product = self.product_name(identifier.vendor, identifier.product)
        if vendor is None or product is None:
            return None
        return vendor, product

    def describe(self, identifier: HardwareIdentifier) -> str | None:
        """``Product (Vendor)`` as far as the names are known."""

        vendor = self.vendor_name(identifier.vendor)
        if vendor is None:
            return None
        product = self.product_name(identifier.vendor, identifier.product)
        if product is None:
            return f"Unknown {vendor} device {identifier.product:04x}"
        return f"{product} ({vendor})"
