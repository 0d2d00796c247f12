"""Archive download with an advisory MD5/ETag check."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import sys
import time
from pathlib import Path
from typing import Any, Mapping, Optional

import httpx
import pooch

from .console import is_verbose, log, log_debug, log_error, log_warning
from .constants import DOWNLOAD_CHUNK_SIZE
from .errors import CLIError, NetworkError
from .http import describe_http_error, download_headers
from .models import IntegrityOutcome, ReleaseRecord
from .utils import format_bytes

ETAG_PATTERN = re.compile(r'^"?([a-fA-F0-9]{32}).*"?$')


def reconcile_etag(headers: Mapping[str, str], computed_digest: str) -> IntegrityOutcome:
    """Compare the computed MD5 with an ETag hint. Never raises."""
    etag: Optional[str] = None
    for name, value in headers.items():
        if name.lower() == "etag":
            etag = value
            break

    if etag is None:
        log_warning("ETag is not present in the response; skipping MD5 comparison")
        return IntegrityOutcome(None, computed_digest, False)

    match = ETAG_PATTERN.search(etag.strip())
    if not match:
        log_error(f"can't extract MD5 from ETag: {etag}")
        return IntegrityOutcome(None, computed_digest, False)

    expected = match.group(1).lower()
    if expected == computed_digest.lower():
        log("calculated MD5 is equal to the ETag in response")
        return IntegrityOutcome(expected, computed_digest, True)
    log_warning(
        f"calculated MD5 is not equal to the ETag in response: {computed_digest} != {expected}"
    )
    return IntegrityOutcome(expected, computed_digest, False)


class _Progress:
    def __init__(self, label: str, total: Optional[int], *, enabled: bool) -> None:
        self.label = label
        self.total = total if total and total > 0 else None
        self.enabled = enabled
        self.done = 0
        self._last = 0.0

    def update(self, size: int) -> None:
        self.done += size
        if not self.enabled:
            return
        now = time.monotonic()
        if now - self._last < 0.1:
            return
        self._last = now
        self._render()

    def _render(self) -> None:
        if self.total:
            percent = int(min(self.done / self.total, 1.0) * 100)
            line = f"{self.label} {percent:3d}% {format_bytes(self.done)}/{format_bytes(self.total)}"
        else:
            line = f"{self.label} {format_bytes(self.done)}"
        sys.stderr.write(f"\r{line}")
        sys.stderr.flush()

    def finish(self) -> None:
        if not self.enabled:
            return
        self._render()
        sys.stderr.write("\n")
        sys.stderr.flush()


class ArchiveDownloader:
    """Pooch downloader that streams through httpx and hashes on the fly."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        mime: Optional[str] = None,
        expected_size: Optional[int] = None,
        progressbar: bool = False,
    ) -> None:
        self.client = client
        self.mime = mime
        self.expected_size = expected_size
        self.progressbar = progressbar
        self.response_headers: Optional[httpx.Headers] = None
        self.outcome: Optional[IntegrityOutcome] = None

    def __call__(
        self,
        url: str,
        output_file: str,
        pooch_obj: Any = None,
        check_only: bool = False,
        **_: Any,
    ) -> None:
        _ = pooch_obj
        if check_only:
            raise CLIError("check-only downloads are not supported")
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = Path(f"{output_file}.tmp")
        digest = hashlib.md5()
        written = 0
        try:
            with self.client.stream("GET", url, headers=download_headers(self.mime)) as response:
                if response.is_error:
                    response.read()
                response.raise_for_status()
                self.response_headers = response.headers
                log_debug(f"response headers: {dict(response.headers)}")
                progress = _Progress(
                    output_path.name,
                    _content_length(response.headers),
                    enabled=self.progressbar and sys.stderr.isatty(),
                )
                with tmp_path.open("wb") as fh:
                    for chunk in response.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if not chunk:
                            continue
                        fh.write(chunk)
                        digest.update(chunk)
                        written += len(chunk)
                        progress.update(len(chunk))
                progress.finish()
            os.replace(tmp_path, output_path)
        except httpx.HTTPError as exc:
            hint = _download_error_hint(exc)
            extra = f" Hint: {hint}" if hint else ""
            raise NetworkError(
                f"download failed for {url}: {describe_http_error(exc)}{extra}", url=url
            ) from exc
        except OSError as exc:
            raise CLIError(f"failed to write download file {output_path}: {exc}") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

        if self.expected_size and written != self.expected_size:
            log_warning(
                f"downloaded {written} bytes but the catalog announced {self.expected_size}"
            )
        computed = digest.hexdigest()
        log(f"archive has been loaded successfully, calculated MD5 digest is {computed}")
        self.outcome = reconcile_etag(self.response_headers or {}, computed)


def _download_error_hint(exc: httpx.HTTPError) -> Optional[str]:
    if isinstance(exc, httpx.ProxyError):
        return "check the proxy setting or HTTP_PROXY/HTTPS_PROXY/NO_PROXY"
    if isinstance(exc, httpx.TimeoutException):
        return "network timeout; raise --timeout or use a more reliable connection"
    if isinstance(exc, httpx.ConnectError):
        return "could not connect to the download server; check your internet/VPN/firewall"
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return "download server is rate limiting; wait a bit and retry"
        if status >= 500:
            return "download server error; try again later"
        if status in {403, 404}:
            return "the archive is not available; check the release with 'jdkcache releases'"
    return None


def _content_length(headers: Mapping[str, str]) -> Optional[int]:
    raw = headers.get("Content-Length")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def download_release(
    client: httpx.Client,
    release: ReleaseRecord,
    dest: Path,
    *,
    progressbar: bool = True,
) -> Optional[IntegrityOutcome]:
    """Fetch ``release`` into ``dest`` unless a file is already staged there."""
    if dest.is_file():
        log(f"detected loaded archive: {dest.name}; download is skipped")
        return None

    log(f"loading archive {release.file_name} ({format_bytes(release.size_bytes)})")
    downloader = ArchiveDownloader(
        client,
        mime=release.mime_type,
        expected_size=release.size_bytes,
        progressbar=progressbar,
    )
    pooch_logger = pooch.get_logger()
    previous_level = pooch_logger.level
    if not is_verbose():
        pooch_logger.setLevel(logging.WARNING)
    try:
        pooch.retrieve(
            url=release.download_link,
            known_hash=None,
            fname=dest.name,
            path=dest.parent,
            downloader=downloader,
        )
    finally:
        pooch_logger.setLevel(previous_level)
    return downloader.outcome
