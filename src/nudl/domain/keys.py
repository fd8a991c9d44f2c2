"""Canonical label keys for hardware identifiers and kernel modules.

Keys have the form ``<prefix>/<token>``. Tokens only contain ``[A-Za-z0-9._-]``
and start and end with an alphanumeric character; the full key never exceeds
:data:`MAX_KEY_LENGTH` characters. Human readable tokens that break either rule
are rejected rather than trimmed or truncated; callers fall back to the
fixed-width raw form instead.
"""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import InvalidKeyToken, KeyEncodingError, KeyTooLong, NameNotFound
from .types import KeyMode

if TYPE_CHECKING:
    from .ports import NameLookup
    from .types import HardwareIdentifier

log = getLogger(__name__)

MAX_KEY_LENGTH = 63
DEFAULT_LABEL_PREFIX = "nudl.squat.ai"
# "vvvv_pppp"
RAW_TOKEN_LENGTH = 9

_FORBIDDEN = r"[^A-Za-z0-9._-]"
# Kubernetes label name: alphanumeric at both ends
_VALID_TOKEN = re.compile(r"^[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")


def max_prefix_length() -> int:
    """Longest prefix for which every raw key still fits."""

    return MAX_KEY_LENGTH - RAW_TOKEN_LENGTH - 1


class KeyCodec:
    """Encodes identifiers and module names into label keys under ``prefix``."""

    def __init__(self, prefix: str, name_lookup: NameLookup | None = None) -> None:
        self.prefix = prefix
        self._name_lookup = name_lookup
        self._forbidden = re.compile(_FORBIDDEN)

    def sanitize(self, value: str) -> str:
        return self._forbidden.sub("-", value.strip())

    def is_managed(self, key: str) -> bool:
        return key.startswith(f"{self.prefix}/")

    def encode(self, identifier: HardwareIdentifier, mode: KeyMode = KeyMode.RAW) -> str:
        if mode is KeyMode.HUMAN:
            try:
                return self.encode_human(identifier)
            except KeyEncodingError as exc:
                log.debug("Falling back to raw key for %s: %s", identifier, exc)
        return self.encode_raw(identifier)

    def encode_raw(self, identifier: HardwareIdentifier) -> str:
        return self._qualify(f"{identifier.vendor:04x}_{identifier.product:04x}")

    def encode_human(self, identifier: HardwareIdentifier) -> str:
        resolved = self._name_lookup.resolve_name(identifier) if self._name_lookup else None
        if resolved is None:
            raise NameNotFound(identifier)
        vendor, product = resolved
        if not vendor.strip() or not product.strip():
            raise NameNotFound(identifier)
        return self._checked(self._qualify(f"{self.sanitize(vendor)}_{self.sanitize(product)}"))

    def encode_module(self, name: str) -> str:
        return self._checked(self._qualify(self.sanitize(name)))

    def _qualify(self, token: str) -> str:
        return f"{self.prefix}/{token}"

    def _checked(self, key: str) -> str:
        if len(key) > MAX_KEY_LENGTH:
            raise KeyTooLong(key, MAX_KEY_LENGTH)
        if not _VALID_TOKEN.match(key.removeprefix(f"{self.prefix}/")):
            raise InvalidKeyToken(key)
        return key
