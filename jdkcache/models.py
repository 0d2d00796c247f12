"""Data models shared across jdkcache modules."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class DistributionRequest:
    """A vendor-neutral description of the JDK to acquire."""

    type: str
    version: str
    os: str = ""
    arch: str = ""
    keep_archive: bool = False

    def normalized(self) -> "DistributionRequest":
        return replace(
            self,
            type=_normalize(self.type),
            version=_normalize(self.version),
            os=_normalize(self.os),
            arch=_normalize(self.arch),
        )

    def missing_fields(self) -> List[str]:
        missing: List[str] = []
        for name in ("type", "version", "arch"):
            if not _normalize(getattr(self, name)):
                missing.append(name)
        return missing

    def validate(self) -> None:
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"missing required distribution parameter(s): {', '.join(missing)}"
            )

    def describe(self) -> str:
        return (
            f"version='{self.version}', type='{self.type}', "
            f"os='{self.os}', arch='{self.arch}'"
        )


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


@dataclass(frozen=True)
class ReleaseRecord:
    """One downloadable vendor archive parsed from the release catalog."""

    type: str
    version: str
    os: str
    arch: str
    file_name: str
    download_link: str
    mime_type: str
    archive_extension: str
    size_bytes: int

    def describe(self) -> str:
        return (
            f"Release[type='{self.type}',version='{self.version}',os='{self.os}',"
            f"arch='{self.arch}',ext='{self.archive_extension}']"
        )


@dataclass(frozen=True)
class ParseFailure:
    file_name: str
    reason: str


@dataclass(frozen=True)
class IntegrityOutcome:
    """Result of comparing the computed digest with the server's ETag hint."""

    expected_digest: Optional[str]
    computed_digest: str
    matched: bool
