"""Shared constants for jdkcache."""

from __future__ import annotations

PACKAGE_NAME = "jdkcache"

PROVIDER_TAG = "LIBERICA"
VENDOR_PREFIX = "bellsoft"
CATALOG_URL = "https://api.github.com/repos/bell-sw/Liberica/releases"
CATALOG_MEDIA_TYPE = "application/vnd.github.v3+json"
CATALOG_PAGE_SIZE = 100

ARCHIVE_EXTENSIONS = ("tar.gz", "zip")

CACHE_ENV_VAR = "JDKCACHE_CACHE_DIR"
CONFIG_ENV_VAR = "JDKCACHE_CONFIG"
OFFLINE_ENV_VAR = "JDKCACHE_OFFLINE"
CATALOG_URL_ENV_VAR = "JDKCACHE_CATALOG_URL"
TOKEN_ENV_VAR = "JDKCACHE_GITHUB_TOKEN"
DEFAULT_CACHE_DIR_NAME = "jdkcache"

KEYRING_SERVICE = "jdkcache"
KEYRING_TOKEN_USERNAME = "github_token"

HTTP_TIMEOUT_SECONDS = 60.0
DOWNLOAD_CHUNK_SIZE = 1024 * 64

LOCK_TIMEOUT_SECONDS = 60.0 * 10
LOCK_STALE_AFTER_SECONDS = 60.0 * 60.0 * 2

EXIT_CODE_FAILURE = 1
EXIT_CODE_USAGE = 2
EXIT_CODE_INTERRUPT = 130
