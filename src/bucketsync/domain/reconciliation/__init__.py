"""Reconciliation core: keep local manifests in step with their upstreams.

Layered flow per manifest:
1) decode the source record from the manifest (``metadata_codec``)
2) decide whether the upstream file moved (``resolve``)
3) fetch and classify the upstream change (``classify``)
4) decide apply / defer / lock / report (``policy``)
5) mutate the body and persist (``apply`` + ``engine``)
"""

from __future__ import annotations

from .classify import classify_change
from .engine import ReconciliationEngine
from .metadata_codec import (
    decode_metadata,
    encode_metadata,
    manifest_from_document,
    manifest_to_document,
)
from .plan import (
    ApplyKind,
    ChangeKind,
    Classification,
    Decision,
    ManifestReport,
    Outcome,
    ReconciliationContext,
    RunMode,
    RunSummary,
    SourceResolution,
)
from .policy import PolicySubject, decide
from .resolve import resolve_source

__all__ = [
    "ApplyKind",
    "ChangeKind",
    "Classification",
    "Decision",
    "ManifestReport",
    "Outcome",
    "PolicySubject",
    "ReconciliationContext",
    "ReconciliationEngine",
    "RunMode",
    "RunSummary",
    "SourceResolution",
    "classify_change",
    "decide",
    "decode_metadata",
    "encode_metadata",
    "manifest_from_document",
    "manifest_to_document",
    "resolve_source",
]
