"""GitHub token storage for catalog requests."""

from __future__ import annotations

import os
from typing import Optional, Tuple

import keyring
from keyring.errors import NoKeyringError, PasswordDeleteError

from .console import log_error
from .constants import KEYRING_SERVICE, KEYRING_TOKEN_USERNAME, TOKEN_ENV_VAR
from .errors import CLIError


def _load_keyring_token() -> Optional[str]:
    try:
        secret = keyring.get_password(KEYRING_SERVICE, KEYRING_TOKEN_USERNAME)
    except NoKeyringError:
        return None
    except Exception as exc:
        log_error(f"failed to read stored token from keyring: {exc}")
        return None
    if not secret:
        return None
    return secret.strip() or None


def resolve_catalog_token_with_source() -> Tuple[Optional[str], Optional[str]]:
    env_token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if env_token:
        return env_token, "env"
    stored = _load_keyring_token()
    if stored:
        return stored, "keyring"
    return None, None


def resolve_catalog_token() -> Optional[str]:
    token, _ = resolve_catalog_token_with_source()
    return token


def persist_catalog_token(token: str) -> None:
    normalized = (token or "").strip()
    if not normalized:
        raise CLIError("attempted to persist empty token")
    try:
        keyring.set_password(KEYRING_SERVICE, KEYRING_TOKEN_USERNAME, normalized)
    except NoKeyringError as exc:
        raise CLIError(
            f"no system keyring available; export {TOKEN_ENV_VAR} instead"
        ) from exc
    except Exception as exc:
        raise CLIError(f"failed to store token in keyring: {exc}") from exc


def clear_catalog_token() -> bool:
    try:
        keyring.delete_password(KEYRING_SERVICE, KEYRING_TOKEN_USERNAME)
    except (NoKeyringError, PasswordDeleteError):
        return False
    return True


def mask_token(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"
