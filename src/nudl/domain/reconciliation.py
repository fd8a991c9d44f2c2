"""One scan, merge and patch cycle against the local node.

The reconciler never caches the node between cycles: every cycle starts from a
fresh read so merges are always computed against the registry's current state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import (
    CycleCancelled,
    InventoryIncomplete,
    ModuleSourceUnavailable,
    NudlError,
    ScanFailure,
    TransportFailure,
)
from .merge import managed_keys, merge_labels, strip_managed
from .patching import PatchApplier

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from nudl.common.metrics import LabelerMetrics

    from .inventory import InventoryCollector
    from .ports import NodeRegistry
    from .types import Inventory, NodeRecord

log = getLogger(__name__)


class SchedulerState(StrEnum):
    IDLE = "idle"
    SCANNING = "scanning"
    MERGING = "merging"
    PATCHING = "patching"
    SHUTTING_DOWN = "shutting_down"


type StateListener = Callable[[SchedulerState], None]


class CancellationToken:
    """Process-wide shutdown flag checked before each registry call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, action: str) -> None:
        if self._event.is_set():
            raise CycleCancelled(f"shutdown in progress, not starting to {action}")


@dataclass(slots=True)
class CycleResult:
    node: str
    labels: dict[str, str]
    managed: int


def _ignore_state(_state: SchedulerState) -> None:
    return None


class Reconciler:
    """Runs reconciliation and cleanup cycles for a single node."""

    def __init__(
        self,
        *,
        node_name: str,
        prefix: str,
        collector: InventoryCollector,
        registry: NodeRegistry,
        metrics: LabelerMetrics,
    ) -> None:
        self.node_name = node_name
        self.prefix = prefix
        self.collector = collector
        self.registry = registry
        self.metrics = metrics
        self.applier = PatchApplier(registry)

    async def reconcile(
        self,
        token: CancellationToken,
        on_state: StateListener = _ignore_state,
    ) -> CycleResult:
        """Fetch the node, scan, merge and patch.

        Raises the registry and scan errors of :mod:`nudl.domain.errors`, or
        :class:`CycleCancelled` if shutdown started before a registry call.
        """

        on_state(SchedulerState.SCANNING)
        token.raise_if_cancelled("fetch the node")
        node = await self._registry_call(self.registry.get_node(self.node_name))
        inventory = await asyncio.to_thread(self._collect)
        log.debug("Successfully scanned hardware: %s labels", len(inventory))

        on_state(SchedulerState.MERGING)
        labels = merge_labels(node.labels, inventory, self.prefix)
        managed = len(managed_keys(labels, self.prefix))
        self.metrics.managed_labels.set(managed)

        on_state(SchedulerState.PATCHING)
        token.raise_if_cancelled("patch the node")
        confirmed = await self._registry_call(self.applier.apply(node, labels))
        return CycleResult(node=node.name, labels=confirmed, managed=managed)

    async def cleanup(self) -> CycleResult:
        """Remove every managed label from the node, regardless of inventory."""

        node: NodeRecord = await self._registry_call(self.registry.get_node(self.node_name))
        labels = strip_managed(node.labels, self.prefix)
        confirmed = await self._registry_call(self.applier.apply(node, labels))
        self.metrics.managed_labels.set(0)
        log.info("Successfully cleaned node %s", node.name)
        log.debug("Labels of cleaned node: %s", confirmed)
        return CycleResult(node=node.name, labels=confirmed, managed=0)

    def _collect(self) -> Inventory:
        try:
            return self.collector.collect()
        except InventoryIncomplete as exc:
            for failure in exc.failures:
                if isinstance(failure, ScanFailure):
                    self.metrics.usb_scan_errors.inc()
                elif isinstance(failure, ModuleSourceUnavailable):
                    self.metrics.module_scan_errors.inc()
            log.warning(
                "Discarding partial inventory with %s labels after failed sub-scans",
                len(exc.partial),
            )
            raise

    @staticmethod
    async def _registry_call[T](call: Awaitable[T]) -> T:
        try:
            return await call
        except NudlError:
            raise
        except Exception as exc:
            raise TransportFailure(f"registry call failed: {exc}") from exc
