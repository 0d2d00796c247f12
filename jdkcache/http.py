"""Shared HTTP helpers for jdkcache."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from .constants import CATALOG_MEDIA_TYPE, HTTP_TIMEOUT_SECONDS
from .utils import safe_str
from .version import USER_AGENT


def http_timeout(seconds: Optional[float] = None) -> httpx.Timeout:
    value = HTTP_TIMEOUT_SECONDS if seconds is None else float(seconds)
    return httpx.Timeout(value, connect=value)


def catalog_headers(token: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Accept": CATALOG_MEDIA_TYPE,
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"token {token}"
    return headers


def download_headers(mime: Optional[str] = None) -> Dict[str, str]:
    return {
        "Accept": mime or "application/octet-stream",
        "User-Agent": USER_AGENT,
    }


_TRANSPORT_SUMMARIES = (
    (httpx.TimeoutException, "request timed out", "timed out"),
    (httpx.ProxyError, "proxy error", "proxy"),
    (httpx.ConnectError, "failed to connect", "connect"),
    (httpx.RequestError, "network error", "network"),
)


def _response_message(response: httpx.Response) -> Optional[str]:
    try:
        body = (response.text or "").strip()
    except httpx.ResponseNotRead:
        return None
    if not body:
        return None
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        # GitHub puts the reason in "message"; CDNs usually answer with plain text.
        message = safe_str(data.get("message") or data.get("error"))
        if message:
            return message
    return body.splitlines()[0].strip() or None


def describe_http_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status = f"{response.status_code} {response.reason_phrase}".strip()
        message = _response_message(response)
        if message:
            return f"{status}: {message}" if status else message
        return status

    text = str(exc).strip()
    for exc_type, summary, keyword in _TRANSPORT_SUMMARIES:
        if isinstance(exc, exc_type):
            if text and keyword not in text.lower():
                return f"{summary}: {text}"
            return summary
    return text or exc.__class__.__name__


def http_error_hint(exc: httpx.HTTPError) -> Optional[str]:
    if isinstance(exc, httpx.ProxyError):
        return "check the proxy setting or HTTP_PROXY/HTTPS_PROXY/NO_PROXY"
    if isinstance(exc, httpx.TimeoutException):
        return "network timeout; raise --timeout or use a more reliable connection"
    if isinstance(exc, httpx.ConnectError):
        return "could not connect; check your internet/VPN/firewall"
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in {403, 429}:
            return "rate limited; store a GitHub token with 'jdkcache auth set-token'"
        if status >= 500:
            return "server error; try again later"
        if status == 404:
            return "resource not found; check the catalog URL"
    return None
