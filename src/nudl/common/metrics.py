"""Prometheus metrics for the labeler and the endpoint serving them."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
    start_http_server,
)

from nudl.domain.errors import StartupError

if TYPE_CHECKING:
    from wsgiref.simple_server import WSGIServer

log = getLogger(__name__)


def _new_registry() -> CollectorRegistry:
    registry = CollectorRegistry(auto_describe=True)
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)
    return registry


@dataclass(slots=True)
class LabelerMetrics:
    """Collectors for one labeler instance, bound to their own registry."""

    registry: CollectorRegistry = field(default_factory=_new_registry)
    reconciling: Counter = field(init=False)
    usb_scan_errors: Counter = field(init=False)
    module_scan_errors: Counter = field(init=False)
    managed_labels: Gauge = field(init=False)

    def __post_init__(self) -> None:
        self.reconciling = Counter(
            "reconciling_counter",
            "Number of reconciling outcomes",
            ["success"],
            registry=self.registry,
        )
        self.usb_scan_errors = Counter(
            "usb_scan_errors",
            "Total errors in usb scans",
            registry=self.registry,
        )
        self.module_scan_errors = Counter(
            "module_scan_errors",
            "Total errors reading the kernel module list",
            registry=self.registry,
        )
        self.managed_labels = Gauge(
            "number_labels",
            "Number of labels that are being managed",
            registry=self.registry,
        )

    def record_cycle(self, *, success: bool) -> None:
        self.reconciling.labels(success=str(success).lower()).inc()

    def exposition(self) -> bytes:
        return generate_latest(self.registry)


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (host optional, as in ``:8080``) into its parts."""

    host, sep, port = address.strip().rpartition(":")
    if not sep or not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ValueError(f"Invalid listen address: {address!r}")
    host = host.strip("[]") or "0.0.0.0"  # noqa: S104
    return host, int(port)


class MetricsServer:
    """Serves ``/metrics`` from a background thread until :meth:`stop`."""

    def __init__(self, metrics: LabelerMetrics, address: str) -> None:
        self.metrics = metrics
        self.address = address
        self._server: WSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int | None:
        return self._server.server_port if self._server is not None else None

    def start(self) -> None:
        host, port = parse_listen_address(self.address)
        try:
            self._server, self._thread = start_http_server(
                port, addr=host, registry=self.metrics.registry
            )
        except OSError as exc:
            raise StartupError(f"could not start metrics server on {self.address}: {exc}") from exc
        log.info("Started metrics server on %s:%s", host, self.port)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
        log.info("Closed metrics server")
