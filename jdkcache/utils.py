"""Shared utility helpers for jdkcache."""

from __future__ import annotations

import os
import re
from typing import Any, Optional


_SENSITIVE_KV_PATTERN = re.compile(
    r"(?i)\b(token|password|passwd|secret)\b\s*([:=])\s*([^\s]+)"
)
_AUTH_HEADER_PATTERN = re.compile(r"(?i)\bAuthorization:\s*(Bearer|token)\s+([^\s]+)")
_URL_CREDENTIALS_PATTERN = re.compile(r"(?i)\b([a-z][a-z0-9+.-]*://)([^/@\s:]+)(:[^/@\s]*)?@")


def redact(text: str) -> str:
    """Best-effort redaction for tokens and proxy credentials in logs."""
    value = str(text)
    value = _AUTH_HEADER_PATTERN.sub(lambda m: f"Authorization: {m.group(1)} ***", value)
    value = _SENSITIVE_KV_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}***", value)
    value = _URL_CREDENTIALS_PATTERN.sub(lambda m: f"{m.group(1)}***@", value)
    return value


def safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return str(value).strip() or None


def safe_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return None


def safe_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return None


def env_truthy(name: str) -> bool:
    return bool(safe_bool(os.environ.get(name)))


def format_bytes(value: float) -> str:
    if value < 0:
        value = 0
    units = ("B", "KB", "MB", "GB", "TB")
    unit_index = 0
    size = float(value)
    while size >= 1024 and unit_index + 1 < len(units):
        size /= 1024.0
        unit_index += 1
    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.1f} {units[unit_index]}"
