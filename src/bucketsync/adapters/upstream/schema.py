"""Upstream manifest payload schema.

Only the fields the classifier relies on are modeled; manifests carry many
more keys, which are allowed and passed through untouched.
"""

from __future__ import annotations

from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, field_validator

UrlField: TypeAlias = str | list[str]


class UpstreamBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class LicenseInfo(UpstreamBaseModel):
    identifier: str
    url: str | None = None


class ArchitectureEntry(UpstreamBaseModel):
    url: UrlField | None = None
    hash: UrlField | None = None
    extract_dir: UrlField | None = None


class AutoupdateBlock(UpstreamBaseModel):
    url: UrlField | None = None
    hash: object | None = None
    architecture: dict[str, ArchitectureEntry] | None = None


class UpstreamManifest(UpstreamBaseModel):
    version: str
    url: UrlField | None = None
    hash: UrlField | None = None
    extract_dir: UrlField | None = None
    homepage: str | None = None
    license: str | LicenseInfo | None = None
    architecture: dict[str, ArchitectureEntry] | None = None
    autoupdate: AutoupdateBlock | None = None

    @field_validator("version")
    @classmethod
    def _version_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("version must not be blank")
        return value
