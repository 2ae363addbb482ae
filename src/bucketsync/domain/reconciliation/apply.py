"""Body mutations for accepted upstream changes.

Both helpers are pure: they return a new body and never touch metadata, which
the policy owns.
"""

from __future__ import annotations

from copy import deepcopy
from typing import TYPE_CHECKING

from bucketsync.domain.model import METADATA_FIELD

from .classify import SIMPLE_FIELDS
from .plan import ApplyKind

if TYPE_CHECKING:
    from bucketsync.domain.model import ManifestBody


def apply_simple_change(local: ManifestBody, remote: ManifestBody) -> ManifestBody:
    """Replace the version-correlated blocks of ``local`` with those of ``remote``.

    Keys keep their position in ``local``; blocks the upstream dropped are
    removed and new ones are appended.
    """

    updated = deepcopy(local)
    for key in SIMPLE_FIELDS:
        if key in remote:
            updated[key] = deepcopy(remote[key])
        else:
            updated.pop(key, None)
    return updated


def apply_wholesale_change(remote: ManifestBody) -> ManifestBody:
    """Adopt the upstream body as-is (minus its own metadata field)."""

    return {key: deepcopy(value) for key, value in remote.items() if key != METADATA_FIELD}


def apply_change(kind: ApplyKind, local: ManifestBody, remote: ManifestBody) -> ManifestBody:
    if kind is ApplyKind.SIMPLE:
        return apply_simple_change(local, remote)
    if kind is ApplyKind.WHOLESALE:
        return apply_wholesale_change(remote)
    return local


__all__ = ["apply_change", "apply_simple_change", "apply_wholesale_change"]
