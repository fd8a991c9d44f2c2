"""Port for reading and conditionally patching node records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from nudl.domain.patching import LabelPatch
    from nudl.domain.types import NodeRecord


@runtime_checkable
class NodeRegistry(Protocol):
    """Asynchronous access to the cluster's node records.

    Implementations raise ``RecordNotFound``, ``Conflict`` or ``TransportFailure``
    from :mod:`nudl.domain.errors`; anything else is treated as a transport failure
    by the reconciler.
    """

    async def get_node(self, name: str) -> NodeRecord: ...

    async def patch_labels(
        self,
        name: str,
        patch: LabelPatch,
        *,
        resource_version: str | None,
    ) -> NodeRecord:
        """Apply ``patch`` only if the node is still at ``resource_version``."""
        ...


__all__ = ["NodeRegistry"]
