"""Merge a fresh inventory into a node's existing labels."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


def _is_managed(key: str, prefix: str) -> bool:
    return key.startswith(f"{prefix}/")


def managed_keys(labels: Mapping[str, str], prefix: str) -> set[str]:
    return {key for key in labels if _is_managed(key, prefix)}


def merge_labels(
    existing: Mapping[str, str],
    inventory: Mapping[str, str],
    prefix: str,
) -> dict[str, str]:
    """Return ``existing`` with its managed keys replaced by ``inventory``.

    Managed keys (under ``prefix/``) missing from ``inventory`` are dropped, every
    inventory entry is written, and keys outside the prefix are copied through
    untouched. Neither argument is modified.
    """

    merged = {
        key: value
        for key, value in existing.items()
        if not _is_managed(key, prefix) or key in inventory
    }
    merged.update(inventory)
    return merged


def strip_managed(existing: Mapping[str, str], prefix: str) -> dict[str, str]:
    """Labels with every managed key removed, as used on shutdown."""

    return merge_labels(existing, {}, prefix)
