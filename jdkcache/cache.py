"""Cache directory layout, key derivation and locking."""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from platformdirs import PlatformDirs

from .console import log, log_debug
from .constants import (
    CACHE_ENV_VAR,
    DEFAULT_CACHE_DIR_NAME,
    LOCK_STALE_AFTER_SECONDS,
    LOCK_TIMEOUT_SECONDS,
    PROVIDER_TAG,
)
from .errors import CLIError, ConfigurationError
from .models import DistributionRequest

_SAFE_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.+-"
)


def escape_file_name(value: str) -> str:
    """Percent-encode everything that is not safe in a directory name.

    ``_`` is encoded as well because it separates the key fields.
    """
    out: List[str] = []
    for char in value:
        if char in _SAFE_CHARS:
            out.append(char)
        else:
            out.extend(f"%{byte:02X}" for byte in char.encode("utf-8"))
    return "".join(out)


def derive_cache_key(request: DistributionRequest, *, provider_tag: str = PROVIDER_TAG) -> str:
    normalized = request.normalized()
    fields = (normalized.type, normalized.version, normalized.os, normalized.arch)
    return "_".join([provider_tag, *(escape_file_name(field) for field in fields)])


def default_cache_root() -> Path:
    explicit = os.environ.get(CACHE_ENV_VAR)
    if explicit and explicit.strip():
        return Path(explicit.strip()).expanduser()
    dirs = PlatformDirs(appname=DEFAULT_CACHE_DIR_NAME, appauthor=False, roaming=True)
    return Path(dirs.user_cache_path)


def prepare_cache_root(path: Optional[Path]) -> Path:
    if path is None or not str(path).strip():
        raise ConfigurationError("path to the JDK cache folder is not provided")
    root = Path(path).expanduser()
    if not root.is_dir():
        log(f"creating cache folder: {root}")
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(f"can't create cache folder {root}: {exc}") from exc
    if not os.access(root, os.R_OK):
        raise ConfigurationError(f"can't read from the cache folder, check rights: {root}")
    if not os.access(root, os.W_OK):
        raise ConfigurationError(f"can't write to the cache folder, check rights: {root}")
    return root


def cache_entry_path(cache_root: Path, key: str) -> Path:
    return cache_root / key


def scratch_dir(cache_root: Path, key: str) -> Path:
    return cache_root / f".{key}.partial"


def lock_path(cache_root: Path, key: str) -> Path:
    return cache_root / f".{key}.lock"


def list_cache_entries(cache_root: Path, *, provider_tag: str = PROVIDER_TAG) -> List[str]:
    if not cache_root.is_dir():
        return []
    return sorted(
        item.name
        for item in cache_root.iterdir()
        if item.is_dir() and item.name.startswith(f"{provider_tag}_")
    )


@contextmanager
def cache_lock(
    cache_root: Path,
    key: str,
    *,
    timeout_seconds: float = LOCK_TIMEOUT_SECONDS,
    stale_after_seconds: float = LOCK_STALE_AFTER_SECONDS,
) -> Iterator[Path]:
    """
    Advisory lock for one cache key.

    Uses an atomic create (O_EXCL). If a lock appears stale (mtime older than
    stale_after_seconds), it is removed.
    """
    path = lock_path(cache_root, key)
    started = time.monotonic()
    fd: Optional[int] = None
    while True:
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            break
        except FileExistsError:
            try:
                age = time.time() - path.stat().st_mtime
            except FileNotFoundError:
                continue
            if age >= stale_after_seconds:
                log_debug(f"removing stale cache lock {path}")
                try:
                    path.unlink()
                except OSError:
                    pass
                continue
            if (time.monotonic() - started) >= timeout_seconds:
                raise CLIError(
                    f"timed out waiting for cache lock: {path} "
                    f"(waited {timeout_seconds:.1f}s)"
                ) from None
            time.sleep(0.2)

    try:
        payload = f"pid={os.getpid()} started={time.time():.0f}\n".encode("utf-8")
        try:
            os.write(fd, payload)
        except OSError:
            pass
        yield path
    finally:
        try:
            os.close(fd)
        except OSError:
            pass
        try:
            path.unlink()
        except OSError:
            pass
