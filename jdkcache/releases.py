"""Liberica release catalog: asset name parsing, paging and selection."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import httpx

from .console import log_debug
from .constants import ARCHIVE_EXTENSIONS, CATALOG_PAGE_SIZE, VENDOR_PREFIX
from .errors import NetworkError
from .http import describe_http_error, http_error_hint
from .matcher import VersionMatcher
from .models import DistributionRequest, ParseFailure, ReleaseRecord
from .utils import safe_str

ParseResult = Union[ReleaseRecord, ParseFailure]
PageFetcher = Callable[[int], "ReleaseCatalog"]

_VERSION_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz0123456789.+")


def archive_extension(name: str) -> Optional[str]:
    lowered = (name or "").lower()
    for ext in ARCHIVE_EXTENSIONS:
        if lowered.endswith(f".{ext}"):
            return ext
    return None


def is_archive_name(name: str) -> bool:
    return archive_extension(name) is not None


def parse_release_asset(
    file_name: str,
    link: str,
    mime: str,
    size: int,
    *,
    vendor_prefix: str = VENDOR_PREFIX,
) -> ParseResult:
    """Parse ``<vendor>-<type><version>-<os>-<arch>.<ext>`` into a release record."""

    def fail(reason: str) -> ParseFailure:
        return ParseFailure(file_name=file_name, reason=reason)

    ext = archive_extension(file_name)
    if ext is None:
        return fail("unsupported archive extension")
    stem = file_name[: -(len(ext) + 1)]

    prefix = f"{vendor_prefix}-"
    if not stem.lower().startswith(prefix.lower()):
        return fail(f"missing '{prefix}' prefix")
    segments = stem[len(prefix) :].split("-")
    if len(segments) < 3:
        return fail("expected <type><version>-<os>-<arch>")

    head, os_name, arch_parts = segments[0], segments[1], segments[2:]

    split_at = 0
    while split_at < len(head) and head[split_at].isascii() and head[split_at].isalpha():
        split_at += 1
    jdk_type, version = head[:split_at], head[split_at:]
    if not jdk_type:
        return fail("type is empty")
    if not version or not version[0].isdigit():
        return fail("version must start with a digit")
    if any(char not in _VERSION_CHARS for char in version.lower()):
        return fail(f"invalid character in version '{version}'")

    if not os_name or not (os_name.isascii() and os_name.isalpha()):
        return fail(f"invalid os '{os_name}'")

    arch = "-".join(arch_parts)
    if not arch or any(not part for part in arch_parts) or "." in arch:
        return fail(f"invalid arch '{arch}'")

    return ReleaseRecord(
        type=jdk_type,
        version=version,
        os=os_name,
        arch=arch,
        file_name=file_name,
        download_link=link,
        mime_type=mime,
        archive_extension=ext,
        size_bytes=size,
    )


class ReleaseCatalog:
    """Release records accumulated across catalog pages, in fetch order."""

    def __init__(
        self,
        records: Optional[Iterable[ReleaseRecord]] = None,
        *,
        upstream_entries: Optional[int] = None,
    ) -> None:
        self._records: List[ReleaseRecord] = list(records or [])
        # Raw release objects the page carried before filtering; zero means
        # the upstream has no more pages.
        self.upstream_entries = (
            len(self._records) if upstream_entries is None else upstream_entries
        )

    def add(self, record: ReleaseRecord) -> None:
        self._records.append(record)

    def extend(self, other: Iterable[ReleaseRecord]) -> None:
        self._records.extend(other)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ReleaseRecord]:
        return iter(self._records)

    def find(self, jdk_type: str, version: str, os_name: str, arch: str) -> List[ReleaseRecord]:
        matcher = VersionMatcher(version)
        wanted = (jdk_type.lower(), os_name.lower(), arch.lower())
        return [
            record
            for record in self._records
            if (record.type.lower(), record.os.lower(), record.arch.lower()) == wanted
            and matcher.match(record.version)
        ]

    def find_for(self, request: DistributionRequest) -> List[ReleaseRecord]:
        return self.find(request.type, request.version, request.os, request.arch)

    def report(self) -> str:
        return "\n".join(record.describe() for record in self._records)


def parse_release_page(payload: Any, *, vendor_prefix: str = VENDOR_PREFIX) -> ReleaseCatalog:
    if not isinstance(payload, list):
        raise NetworkError(
            f"unexpected release catalog payload: expected a JSON array, got {type(payload).__name__}"
        )
    catalog = ReleaseCatalog(upstream_entries=len(payload))
    for release in payload:
        if not isinstance(release, dict) or "tag_name" not in release:
            continue
        if release.get("draft") or release.get("prerelease"):
            log_debug(f"skipping draft/pre-release {release.get('tag_name')}")
            continue
        assets = release.get("assets")
        if not isinstance(assets, list):
            continue
        for asset in assets:
            if not isinstance(asset, dict):
                continue
            name = safe_str(asset.get("name")) or ""
            if not is_archive_name(name):
                log_debug(f"ignoring non-archive asset: {name or asset!r}")
                continue
            result = parse_release_asset(
                name,
                safe_str(asset.get("browser_download_url")) or "",
                safe_str(asset.get("content_type")) or "application/octet-stream",
                _asset_size(asset.get("size")),
                vendor_prefix=vendor_prefix,
            )
            if isinstance(result, ParseFailure):
                log_debug(f"ignoring unparseable asset {result.file_name}: {result.reason}")
                continue
            catalog.add(result)
    return catalog


def _asset_size(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def fetch_release_page(
    client: httpx.Client,
    base_url: str,
    page: int,
    *,
    headers: Dict[str, str],
    vendor_prefix: str = VENDOR_PREFIX,
) -> ReleaseCatalog:
    url = f"{base_url.rstrip('/')}?per_page={CATALOG_PAGE_SIZE}&page={page}"
    log_debug(f"loading releases page {page}: {url}")
    try:
        response = client.get(url, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        hint = http_error_hint(exc)
        extra = f" Hint: {hint}" if hint else ""
        raise NetworkError(
            f"failed to load release catalog page {page} from {url}: {describe_http_error(exc)}{extra}",
            url=url,
        ) from exc
    try:
        payload = response.json()
    except ValueError as exc:
        raise NetworkError(
            f"release catalog page {page} from {url} is not valid JSON", url=url
        ) from exc
    return parse_release_page(payload, vendor_prefix=vendor_prefix)


def scan_catalog(
    fetch_page: PageFetcher, request: DistributionRequest
) -> Tuple[ReleaseCatalog, List[ReleaseRecord]]:
    """
    Fetch pages from 1 until something matches or the upstream runs dry.

    Returns the accumulated catalog (for diagnostics) and the matches.
    """
    catalog = ReleaseCatalog()
    matches: List[ReleaseRecord] = []
    page = 1
    while True:
        page_catalog = fetch_page(page)
        catalog.extend(page_catalog)
        matches = catalog.find_for(request)
        if matches or page_catalog.upstream_entries == 0:
            break
        page += 1
    return catalog, matches


def select_release(matches: List[ReleaseRecord]) -> Optional[ReleaseRecord]:
    for ext in ("tar.gz", "zip"):
        for record in matches:
            if record.archive_extension.lower() == ext:
                return record
    return matches[0] if matches else None
