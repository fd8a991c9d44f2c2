"""Reconciliation core: key encoding, inventory, merge, patch and scheduling.

Flow of one cycle:
1) fetch the node from the registry
2) collect the hardware inventory
3) merge it into the node's labels
4) submit the minimal conditional patch
"""

from __future__ import annotations

from .inventory import InventoryCollector, ScanSettings
from .keys import DEFAULT_LABEL_PREFIX, MAX_KEY_LENGTH, KeyCodec
from .merge import managed_keys, merge_labels, strip_managed
from .patching import LabelPatch, PatchApplier, compute_label_patch
from .reconciliation import CancellationToken, CycleResult, Reconciler, SchedulerState
from .scheduler import SHUTDOWN_EXIT_STATUS, ReconciliationScheduler
from .types import HardwareIdentifier, KeyMode, ModuleMatch, NodeRecord

__all__ = [
    "DEFAULT_LABEL_PREFIX",
    "MAX_KEY_LENGTH",
    "SHUTDOWN_EXIT_STATUS",
    "CancellationToken",
    "CycleResult",
    "HardwareIdentifier",
    "InventoryCollector",
    "KeyCodec",
    "KeyMode",
    "LabelPatch",
    "ModuleMatch",
    "NodeRecord",
    "PatchApplier",
    "Reconciler",
    "ReconciliationScheduler",
    "ScanSettings",
    "SchedulerState",
    "compute_label_patch",
    "managed_keys",
    "merge_labels",
    "strip_managed",
]
