"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import signal
from logging import getLogger
from typing import TYPE_CHECKING

from nudl.adapters.kubernetes import KubernetesNodeRegistry
from nudl.adapters.sysfs import ProcModuleSource, SysfsUsbScanner
from nudl.adapters.usbids import UsbIdsDatabase
from nudl.common.metrics import LabelerMetrics, MetricsServer
from nudl.config.kubernetes import load_connection
from nudl.domain.errors import RegistryError, StartupError
from nudl.domain.inventory import InventoryCollector
from nudl.domain.keys import KeyCodec
from nudl.domain.reconciliation import Reconciler
from nudl.domain.scheduler import ReconciliationScheduler

if TYPE_CHECKING:
    from nudl.config.labeler import LabelerConfig
    from nudl.domain.ports import HardwareScanner, ModuleSource, NodeRegistry

log = getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGQUIT)


def build_reconciler(
    config: LabelerConfig,
    *,
    registry: NodeRegistry,
    metrics: LabelerMetrics,
    scanner: HardwareScanner | None = None,
    module_source: ModuleSource | None = None,
    names: UsbIdsDatabase | None = None,
) -> Reconciler:
    """Wire the reconciliation core to the local sysfs/procfs adapters."""

    if names is None:
        names = UsbIdsDatabase.load(config.usb_ids)
    if scanner is None:
        scanner = SysfsUsbScanner(
            root=config.sysfs_root,
            names=names,
        )
    if module_source is None and config.scan.modules:
        module_source = ProcModuleSource(config.modules_file)

    collector = InventoryCollector(
        scanner,
        KeyCodec(config.label_prefix, names),
        config.scan,
        module_source=module_source,
    )
    return Reconciler(
        node_name=config.node_name,
        prefix=config.label_prefix,
        collector=collector,
        registry=registry,
        metrics=metrics,
    )


async def check_registry(registry: NodeRegistry, node_name: str) -> None:
    """Fail startup when the node cannot be read at all."""

    try:
        node = await registry.get_node(node_name)
    except RegistryError as exc:
        raise StartupError(f"could not get node {node_name!r}: {exc}") from exc
    log.info("Found node %s (%s labels)", node.name, len(node.labels))


def install_signal_handlers(scheduler: ReconciliationScheduler) -> None:
    loop = asyncio.get_running_loop()
    for signum in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(signum, scheduler.request_shutdown, f"signal {signum.name}")


async def run_labeler(
    config: LabelerConfig,
    *,
    registry: NodeRegistry | None = None,
    metrics: LabelerMetrics | None = None,
    scanner: HardwareScanner | None = None,
    module_source: ModuleSource | None = None,
    handle_signals: bool = True,
) -> int:
    """Serve metrics and reconcile until shutdown; return the exit status."""

    metrics = metrics or LabelerMetrics()
    owned: KubernetesNodeRegistry | None = None
    if registry is None:
        owned = KubernetesNodeRegistry(load_connection(config.kubeconfig))
        registry = owned

    server = MetricsServer(metrics, config.listen_address)
    try:
        server.start()
        await check_registry(registry, config.node_name)

        reconciler = build_reconciler(
            config,
            registry=registry,
            metrics=metrics,
            scanner=scanner,
            module_source=module_source,
        )
        scheduler = ReconciliationScheduler(
            reconciler,
            metrics,
            interval=config.update_interval,
            on_shutdown=(server.stop,),
        )
        if handle_signals:
            install_signal_handlers(scheduler)

        log.info(
            "Start service: node=%s, label-prefix=%s, mode=%s, no-contain=%s",
            config.node_name,
            config.label_prefix,
            config.scan.mode,
            list(config.scan.exclude),
        )
        return await scheduler.run()
    finally:
        await asyncio.to_thread(server.stop)
        if owned is not None:
            await owned.aclose()
