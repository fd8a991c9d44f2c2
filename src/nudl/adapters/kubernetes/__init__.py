"""Public interface for the Kubernetes adapter."""

from __future__ import annotations

from .client import MERGE_PATCH_CONTENT_TYPE, KubernetesNodeRegistry
from .schema import NodePayload, ObjectMeta, StatusPayload

__all__ = [
    "MERGE_PATCH_CONTENT_TYPE",
    "KubernetesNodeRegistry",
    "NodePayload",
    "ObjectMeta",
    "StatusPayload",
]
