"""Acquisition of Liberica JDK distributions into the local cache."""

from __future__ import annotations

import os
import platform
import shutil
from dataclasses import replace
from functools import lru_cache
from pathlib import Path
from typing import List, Tuple

import httpx

from .archive import unpack_archive
from .cache import cache_entry_path, cache_lock, derive_cache_key, scratch_dir
from .console import log, log_debug, log_error, log_warning
from .context import AcquisitionContext
from .download import download_release
from .errors import ExtractionError, NotFoundError, OfflineError
from .http import catalog_headers
from .models import DistributionRequest, ReleaseRecord
from .releases import ReleaseCatalog, fetch_release_page, scan_catalog, select_release


def normalize_os(system: str) -> str:
    system_lower = system.lower()
    if system_lower == "darwin":
        return "macos"
    if system_lower.startswith("win"):
        return "windows"
    if system_lower == "linux":
        return "linux"
    if system_lower in {"sunos", "solaris"}:
        return "solaris"
    return system_lower


@lru_cache()
def host_os() -> str:
    return normalize_os(platform.system())


def resolve_request(request: DistributionRequest) -> DistributionRequest:
    """Validate and normalize ``request``, filling the OS from the host."""
    request.validate()
    normalized = request.normalized()
    if not normalized.os:
        default_os = host_os()
        log_debug(f"default OS recognized as: {default_os}")
        normalized = replace(normalized, os=default_os)
    return normalized


def scan_releases(
    client: httpx.Client, request: DistributionRequest, ctx: AcquisitionContext
) -> Tuple[ReleaseCatalog, List[ReleaseRecord]]:
    headers = catalog_headers(ctx.catalog_token)

    def fetch(page: int) -> ReleaseCatalog:
        return fetch_release_page(
            client,
            ctx.catalog_url,
            page,
            headers=headers,
            vendor_prefix=ctx.vendor_prefix,
        )

    return scan_catalog(fetch, request)


def find_release(
    client: httpx.Client, request: DistributionRequest, ctx: AcquisitionContext
) -> ReleaseRecord:
    catalog, matches = scan_releases(client, request, ctx)
    release = select_release(matches)
    if release is None:
        report = catalog.report()
        log_warning(f"found releases:\n{report}" if report else "release catalog is empty")
        raise NotFoundError(
            f"can't find release for {request.describe()} "
            f"(scanned {len(catalog)} release archives)",
            report=report,
        )
    log_debug("found releases: " + ", ".join(record.file_name for record in matches))
    log(f"selected release: {release.file_name}")
    return release


def _discard(path: Path) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
    except OSError as exc:
        log_error(f"failed to remove incomplete folder {path}: {exc}")


def install_release(
    client: httpx.Client,
    release: ReleaseRecord,
    target: Path,
    ctx: AcquisitionContext,
    *,
    keep_archive: bool,
) -> Path:
    """Download, unpack into a scratch folder and rename it to ``target``."""
    archive_path = ctx.cache_root / release.file_name
    download_release(client, release, archive_path, progressbar=ctx.progressbar)

    scratch = scratch_dir(ctx.cache_root, target.name)
    try:
        unpack_archive(archive_path, scratch)
        os.replace(scratch, target)
    except ExtractionError:
        _discard(scratch)
        log_error(f"delete {archive_path} to force a fresh download")
        raise
    except BaseException:
        _discard(scratch)
        raise

    if keep_archive:
        log(f"keep downloaded archive file in cache: {archive_path}")
    else:
        log(f"deleting archive: {archive_path}")
        try:
            archive_path.unlink()
        except FileNotFoundError:
            pass
    return target


def acquire(request: DistributionRequest, ctx: AcquisitionContext) -> Path:
    """
    Return the cached JDK folder for ``request``, downloading it on a miss.

    Safe to call repeatedly: once the cache entry exists no network call is
    made. In offline mode a miss raises OfflineError.
    """
    normalized = resolve_request(request)
    key = derive_cache_key(normalized, provider_tag=ctx.provider_tag)
    target = cache_entry_path(ctx.cache_root, key)

    with cache_lock(ctx.cache_root, key, timeout_seconds=ctx.lock_timeout_seconds):
        if target.is_dir():
            log(f"found cached JDK: {key}")
            return target

        if ctx.offline:
            raise OfflineError(
                f"unpacked '{key}' is not found, stopping process because offline mode is active"
            )
        log(f"can't find cached: {key}")

        with ctx.new_http_client() as client:
            release = find_release(client, normalized, ctx)
            return install_release(
                client, release, target, ctx, keep_archive=normalized.keep_archive
            )
