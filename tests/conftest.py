from __future__ import annotations

import hashlib
import io
import json
import tarfile
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

import jdkcache.constants as constants
from jdkcache.console import reset_console
from jdkcache.context import AcquisitionContext

CATALOG_URL = "https://api.example.test/repos/bell-sw/Liberica/releases"
DOWNLOAD_BASE = "https://downloads.example.test/liberica"

JDK_FILES: Dict[str, bytes] = {
    "bin/java": b"#!/bin/sh\necho java\n",
    "bin/jlink": b"#!/bin/sh\necho jlink\n",
    "release": b'JAVA_VERSION="11.0.2"\n',
}


class MemoryKeyring(KeyringBackend):
    priority = 1

    def __init__(self) -> None:
        self._storage: Dict[tuple, str] = {}

    def get_password(self, service: str, username: str) -> Optional[str]:
        return self._storage.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._storage[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self._storage[(service, username)]
        except KeyError as exc:
            raise PasswordDeleteError(str(exc)) from exc


@pytest.fixture(autouse=True)
def memory_keyring() -> None:
    original = keyring.get_keyring()
    keyring.set_keyring(MemoryKeyring())
    try:
        yield
    finally:
        keyring.set_keyring(original)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch) -> None:
    for name in (
        constants.CACHE_ENV_VAR,
        constants.OFFLINE_ENV_VAR,
        constants.CATALOG_URL_ENV_VAR,
        constants.TOKEN_ENV_VAR,
        "JAVA_HOME",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(constants.CONFIG_ENV_VAR, str(tmp_path / "config" / "config.toml"))
    reset_console()
    yield
    reset_console()


def asset(
    name: str,
    *,
    size: int = 1024,
    content_type: str = "application/gzip",
) -> Dict[str, Any]:
    return {
        "name": name,
        "browser_download_url": f"{DOWNLOAD_BASE}/{name}",
        "content_type": content_type,
        "size": size,
    }


def release(
    tag: str, assets: List[Dict[str, Any]], *, draft: bool = False, prerelease: bool = False
) -> Dict[str, Any]:
    return {"tag_name": tag, "draft": draft, "prerelease": prerelease, "assets": assets}


def build_tar_gz(files: Dict[str, bytes], root: Optional[str] = "jdk-11.0.2") -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        if root:
            info = tarfile.TarInfo(root)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tf.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(f"{root}/{name}" if root else name)
            info.size = len(data)
            info.mode = 0o755 if name.startswith("bin/") else 0o644
            tf.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def build_zip(files: Dict[str, bytes], root: Optional[str] = "jdk-11.0.2") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if root:
            zf.writestr(f"{root}/", b"")
        for name, data in files.items():
            zf.writestr(f"{root}/{name}" if root else name, data)
    return buffer.getvalue()


class CatalogServer:
    """In-memory release catalog and CDN served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.pages: List[List[Dict[str, Any]]] = []
        self.archives: Dict[str, bytes] = {}
        self.etags: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []

    def add_page(self, *releases: Dict[str, Any]) -> None:
        self.pages.append(list(releases))

    def add_archive(self, name: str, content: bytes, *, etag: Optional[str] = None) -> str:
        url = f"{DOWNLOAD_BASE}/{name}"
        self.archives[url] = content
        if etag is None:
            etag = f'"{hashlib.md5(content).hexdigest()}"'
        self.etags[url] = etag
        return url

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith(CATALOG_URL):
            page = int(request.url.params.get("page", "1"))
            payload = self.pages[page - 1] if 0 < page <= len(self.pages) else []
            return httpx.Response(200, content=json.dumps(payload).encode("utf-8"))
        if url in self.archives:
            headers = {"Content-Length": str(len(self.archives[url]))}
            if self.etags.get(url):
                headers["ETag"] = self.etags[url]
            return httpx.Response(200, content=self.archives[url], headers=headers)
        return httpx.Response(404, content=b"not found")

    @property
    def catalog_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(CATALOG_URL)]

    @property
    def download_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(DOWNLOAD_BASE)]

    def client(self, **_: Any) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handle), follow_redirects=True)

    def context(self, cache_root: Path, **overrides: Any) -> AcquisitionContext:
        cache_root.mkdir(parents=True, exist_ok=True)
        values: Dict[str, Any] = {
            "cache_root": cache_root,
            "catalog_url": CATALOG_URL,
            "progressbar": False,
            "lock_timeout_seconds": 1.0,
            "http_client_factory": self.client,
        }
        values.update(overrides)
        return AcquisitionContext(**values)


@pytest.fixture
def catalog_server() -> CatalogServer:
    return CatalogServer()
