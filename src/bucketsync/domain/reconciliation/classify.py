"""Change classification between a local manifest body and its upstream.

Priority, highest first: license change, domain change, then the structural
check that separates simple version bumps from complex edits. A version bump
that also changes the license must never be auto-applied.
"""

from __future__ import annotations

from copy import deepcopy
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlsplit

from bucketsync.domain.model import METADATA_FIELD, manifest_version

from .plan import ChangeKind, Classification

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Iterator

    from bucketsync.domain.model import ManifestBody

# Fields that legitimately change with every release.
VERSION_FIELDS: Final[tuple[str, ...]] = ("url", "hash", "extract_dir")
SIMPLE_FIELDS: Final[tuple[str, ...]] = (
    "version",
    "url",
    "hash",
    "extract_dir",
    "architecture",
    "autoupdate",
)

HOSTING_PLATFORMS: Final[frozenset[str]] = frozenset(
    {"github.com", "gitlab.com", "bitbucket.org", "codeberg.org", "sourceforge.net"}
)


def classify_change(
    local: ManifestBody,
    remote: ManifestBody,
    *,
    deep: bool = False,
    ignored_hosts: Collection[str] = (),
) -> Classification:
    local_doc = _without_metadata(local)
    remote_doc = _without_metadata(remote)

    if deep:
        if local_doc == remote_doc:
            return Classification(ChangeKind.NO_CHANGE)
    elif manifest_version(local_doc, name="local") == manifest_version(remote_doc, name="remote"):
        return Classification(ChangeKind.NO_CHANGE)

    local_license = normalize_license(local_doc.get("license"))
    remote_license = normalize_license(remote_doc.get("license"))
    if local_license != remote_license:
        return Classification(
            ChangeKind.LICENSE_CHANGE,
            (f"license {local_license or '<none>'} -> {remote_license or '<none>'}",),
        )

    domain_reasons = _domain_differences(local_doc, remote_doc, ignored_hosts=ignored_hosts)
    if domain_reasons:
        return Classification(ChangeKind.DOMAIN_CHANGE, tuple(domain_reasons))

    local_structure = strip_version_fields(local_doc)
    remote_structure = strip_version_fields(remote_doc)
    if local_structure == remote_structure:
        return Classification(ChangeKind.SIMPLE_VERSION_CHANGE)
    changed = sorted(
        key
        for key in set(local_structure) | set(remote_structure)
        if local_structure.get(key) != remote_structure.get(key)
    )
    return Classification(ChangeKind.COMPLEX_CHANGE, tuple(f"{key} changed" for key in changed))


def normalize_license(value: object) -> str | None:
    if isinstance(value, dict):
        value = value.get("identifier")
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def strip_version_fields(body: ManifestBody) -> dict[str, Any]:
    """Return a deep copy of ``body`` without version-correlated fields."""

    stripped = _without_metadata(deepcopy(body))
    stripped.pop("version", None)
    _strip_download_fields(stripped)
    autoupdate = stripped.get("autoupdate")
    if isinstance(autoupdate, dict):
        _strip_download_fields(autoupdate)
    return stripped


def _strip_download_fields(block: dict[str, Any]) -> None:
    for key in VERSION_FIELDS:
        block.pop(key, None)
    architectures = block.get("architecture")
    if isinstance(architectures, dict):
        for entry in architectures.values():
            if isinstance(entry, dict):
                for key in VERSION_FIELDS:
                    entry.pop(key, None)


def _without_metadata(body: ManifestBody) -> dict[str, Any]:
    return {key: value for key, value in body.items() if key != METADATA_FIELD}


def _as_list(value: object) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


def iter_download_urls(body: ManifestBody) -> Iterator[str]:
    yield from _as_list(body.get("url"))
    architectures = body.get("architecture")
    if isinstance(architectures, dict):
        for entry in architectures.values():
            if isinstance(entry, dict):
                yield from _as_list(entry.get("url"))


def url_identity(url: str) -> str | None:
    """Host of ``url`` plus, for hosting platforms, the owner/project path."""

    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()
    if not host:
        return None
    host = host.removeprefix("www.")
    if host in HOSTING_PLATFORMS:
        segments = [segment for segment in parts.path.split("/") if segment]
        if segments[:2]:
            return "/".join([host, *(segment.lower() for segment in segments[:2])])
    return host


def _identities(urls: Iterable[str], ignored_hosts: Collection[str]) -> set[str]:
    identities: set[str] = set()
    for url in urls:
        identity = url_identity(url)
        if identity is None:
            continue
        if identity.split("/", 1)[0] in ignored_hosts:
            continue
        identities.add(identity)
    return identities


def _domain_differences(
    local: ManifestBody,
    remote: ManifestBody,
    *,
    ignored_hosts: Collection[str],
) -> list[str]:
    reasons: list[str] = []
    categories = (
        ("homepage", _as_list(local.get("homepage")), _as_list(remote.get("homepage"))),
        ("download", list(iter_download_urls(local)), list(iter_download_urls(remote))),
    )
    for label, local_urls, remote_urls in categories:
        local_ids = _identities(local_urls, ignored_hosts)
        remote_ids = _identities(remote_urls, ignored_hosts)
        # nothing to compare when one side only points at mirrors or has no urls
        if not local_ids or not remote_ids or local_ids == remote_ids:
            continue
        removed = ", ".join(sorted(local_ids - remote_ids)) or "-"
        added = ", ".join(sorted(remote_ids - local_ids)) or "-"
        reasons.append(f"{label} {removed} -> {added}")
    return reasons


__all__ = [
    "HOSTING_PLATFORMS",
    "SIMPLE_FIELDS",
    "classify_change",
    "iter_download_urls",
    "normalize_license",
    "strip_version_fields",
    "url_identity",
]
