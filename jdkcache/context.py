"""Acquisition context for injectable dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx

from .constants import (
    CATALOG_URL,
    HTTP_TIMEOUT_SECONDS,
    LOCK_TIMEOUT_SECONDS,
    PROVIDER_TAG,
    VENDOR_PREFIX,
)
from .http import http_timeout

HttpClientFactory = Callable[..., httpx.Client]


def default_http_client_factory(
    *, timeout: httpx.Timeout, proxy: Optional[str], verify: bool
) -> httpx.Client:
    return httpx.Client(timeout=timeout, follow_redirects=True, proxy=proxy, verify=verify)


@dataclass(frozen=True)
class AcquisitionContext:
    """Settings and collaborators for one acquisition, fixed at construction."""

    cache_root: Path
    offline: bool = False
    timeout_seconds: float = HTTP_TIMEOUT_SECONDS
    proxy: Optional[str] = None
    verify_ssl: bool = True
    catalog_url: str = CATALOG_URL
    catalog_token: Optional[str] = None
    provider_tag: str = PROVIDER_TAG
    vendor_prefix: str = VENDOR_PREFIX
    progressbar: bool = True
    lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS
    http_client_factory: HttpClientFactory = default_http_client_factory

    def new_http_client(self) -> httpx.Client:
        return self.http_client_factory(
            timeout=http_timeout(self.timeout_seconds),
            proxy=self.proxy,
            verify=self.verify_ssl,
        )
