"""Minimal label diffs and their conditional submission to the registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .ports import NodeRegistry
    from .types import NodeRecord

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class LabelPatch:
    """Label changes between two snapshots of the same node."""

    changed: Mapping[str, str] = field(default_factory=dict)
    removed: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.changed and not self.removed

    def as_merge_patch(self) -> dict[str, str | None]:
        """Render as the ``labels`` body of a JSON merge patch (``None`` deletes)."""

        body: dict[str, str | None] = dict.fromkeys(sorted(self.removed))
        body.update(self.changed)
        return body


def compute_label_patch(before: Mapping[str, str], after: Mapping[str, str]) -> LabelPatch:
    changed = {key: value for key, value in after.items() if before.get(key) != value}
    removed = frozenset(key for key in before if key not in after)
    return LabelPatch(changed=changed, removed=removed)


@dataclass(slots=True)
class PatchApplier:
    """Submits label diffs conditioned on the node's resource version.

    Registry errors (``RecordNotFound``, ``Conflict``, ``TransportFailure``)
    propagate to the caller unchanged; nothing is retried here.
    """

    registry: NodeRegistry

    async def apply(self, before: NodeRecord, after: Mapping[str, str]) -> dict[str, str]:
        patch = compute_label_patch(before.labels, after)
        if patch.is_empty:
            log.debug("Labels of node %s are up to date", before.name)
            return dict(before.labels)

        log.debug(
            "Patching node %s: changed=%s, removed=%s",
            before.name,
            dict(patch.changed),
            sorted(patch.removed),
        )
        updated = await self.registry.patch_labels(
            before.name,
            patch,
            resource_version=before.resource_version,
        )
        log.debug("Patched labels: %s", dict(updated.labels))
        return dict(updated.labels)
