"""Immutable runtime configuration of the labeler process."""

from __future__ import annotations

import logging
import math
import re
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from nudl.adapters.sysfs import PROC_MODULES, SYSFS_USB_DEVICES
from nudl.common.metrics import parse_listen_address
from nudl.domain.errors import KeyEncodingError
from nudl.domain.inventory import ScanSettings
from nudl.domain.keys import DEFAULT_LABEL_PREFIX, KeyCodec, max_prefix_length
from nudl.domain.scheduler import DEFAULT_UPDATE_INTERVAL_SECONDS
from nudl.domain.types import HardwareIdentifier, KeyMode, ModuleMatch

from .env import optional_env_var
from .errors import ConfigurationError
from .logging import parse_log_level

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_LISTEN_ADDRESS = ":8080"

_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """Parse ``10``, ``10s``, ``1m30s`` or ``250ms`` into seconds."""

    text = value.strip().lower()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ConfigurationError(f"Invalid duration: {value!r}")
        return seconds
    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    return total


def split_list(values: Iterable[str] | None) -> tuple[str, ...]:
    """Flatten repeated and comma separated option values, dropping blanks."""

    items: list[str] = []
    for value in values or ():
        items.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(items)


def default_node_name() -> str:
    return optional_env_var("NODE_NAME") or socket.gethostname()


@dataclass(frozen=True, kw_only=True)
class LabelerConfig:
    """Everything the process needs, validated once at startup."""

    node_name: str
    kubeconfig: str | None = None
    label_prefix: str = DEFAULT_LABEL_PREFIX
    update_interval: float = DEFAULT_UPDATE_INTERVAL_SECONDS
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    log_level: int = logging.INFO
    scan: ScanSettings = field(default_factory=ScanSettings)
    sysfs_root: Path = SYSFS_USB_DEVICES
    modules_file: Path = PROC_MODULES
    usb_ids: Path | None = None

    def __post_init__(self) -> None:
        self._validate()

    @classmethod
    def from_options(  # noqa: PLR0913
        cls,
        *,
        node_name: str | None = None,
        kubeconfig: str | None = None,
        human_readable: bool = True,
        label_prefix: str = DEFAULT_LABEL_PREFIX,
        update_time: str = "10s",
        no_contain: Iterable[str] | None = None,
        include: Iterable[str] | None = None,
        modules: Iterable[str] | None = None,
        module_match: str = ModuleMatch.EXACT.value,
        listen_address: str = DEFAULT_LISTEN_ADDRESS,
        log_level: str = "info",
        sysfs_root: str | None = None,
        modules_file: str | None = None,
        usb_ids: str | None = None,
    ) -> LabelerConfig:
        """Build from raw option values, raising ``ConfigurationError`` on bad input."""

        try:
            included = tuple(HardwareIdentifier.parse(value) for value in split_list(include))
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        try:
            match = ModuleMatch(module_match.strip().lower())
        except ValueError:
            options = ", ".join(item.value for item in ModuleMatch)
            msg = f"module match {module_match!r} unknown; possible values are: {options}"
            raise ConfigurationError(msg) from None

        return cls(
            node_name=(node_name or default_node_name()).strip(),
            kubeconfig=kubeconfig or optional_env_var("KUBECONFIG"),
            label_prefix=label_prefix.strip(),
            update_interval=parse_duration(update_time),
            listen_address=listen_address,
            log_level=parse_log_level(log_level),
            scan=ScanSettings(
                mode=KeyMode.HUMAN if human_readable else KeyMode.RAW,
                exclude=split_list(no_contain),
                include=included,
                modules=split_list(modules),
                module_match=match,
            ),
            sysfs_root=Path(sysfs_root) if sysfs_root else SYSFS_USB_DEVICES,
            modules_file=Path(modules_file) if modules_file else PROC_MODULES,
            usb_ids=Path(usb_ids) if usb_ids else None,
        )

    def _validate(self) -> None:
        if not self.node_name:
            raise ConfigurationError("Missing node name (use --hostname or NODE_NAME)")
        if not _PREFIX_PATTERN.match(self.label_prefix):
            raise ConfigurationError(
                f"Label prefix {self.label_prefix!r} may only contain [A-Za-z0-9._-]"
            )
        if len(self.label_prefix) > max_prefix_length():
            raise ConfigurationError(
                f"Label prefix {self.label_prefix!r} leaves no room for device keys "
                f"(at most {max_prefix_length()} characters)"
            )
        if self.update_interval <= 0:
            raise ConfigurationError("Update time must be positive")
        if self.scan.include and self.scan.mode is KeyMode.HUMAN:
            raise ConfigurationError(
                "Inclusion lists use raw keys; disable human readable mode to use --include"
            )
        codec = KeyCodec(self.label_prefix)
        for module in self.scan.modules:
            try:
                codec.encode_module(module)
            except KeyEncodingError as exc:
                raise ConfigurationError(f"Module filter {module!r}: {exc}") from exc
        try:
            parse_listen_address(self.listen_address)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
