from __future__ import annotations

import pytest

from nudl.common.metrics import LabelerMetrics
from nudl.domain.inventory import InventoryCollector, ScanSettings
from nudl.domain.keys import DEFAULT_LABEL_PREFIX, KeyCodec
from nudl.domain.reconciliation import Reconciler
from nudl.domain.types import NodeRecord
from tests.support.fakes import (
    FOREIGN_LABELS,
    INTEL_DRAM,
    LOGITECH_MOUSE,
    NODE_NAME,
    FakeModuleSource,
    FakeNames,
    FakeScanner,
    InMemoryRegistry,
)


@pytest.fixture
def codec() -> KeyCodec:
    return KeyCodec(DEFAULT_LABEL_PREFIX, FakeNames())


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner(devices=[INTEL_DRAM, LOGITECH_MOUSE])


@pytest.fixture
def module_source() -> FakeModuleSource:
    return FakeModuleSource(modules=["wireguard", "nfs"])


@pytest.fixture
def registry() -> InMemoryRegistry:
    node = NodeRecord(name=NODE_NAME, resource_version=None, labels=FOREIGN_LABELS)
    return InMemoryRegistry(node)


@pytest.fixture
def metrics() -> LabelerMetrics:
    return LabelerMetrics()


@pytest.fixture
def reconciler(
    scanner: FakeScanner,
    codec: KeyCodec,
    registry: InMemoryRegistry,
    metrics: LabelerMetrics,
) -> Reconciler:
    collector = InventoryCollector(scanner, codec, ScanSettings())
    return Reconciler(
        node_name=NODE_NAME,
        prefix=DEFAULT_LABEL_PREFIX,
        collector=collector,
        registry=registry,
        metrics=metrics,
    )
