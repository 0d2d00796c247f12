#!/usr/bin/env python3
"""jdkcache CLI entry point."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Optional, Sequence, Tuple

import click
import typer

from . import __version__
from .auth import (
    clear_catalog_token,
    mask_token,
    persist_catalog_token,
    resolve_catalog_token,
    resolve_catalog_token_with_source,
)
from .cache import derive_cache_key, list_cache_entries, prepare_cache_root
from .config import (
    RequestDefaults,
    effective_config,
    load_config,
    resolve_config_path,
    resolve_settings,
    write_default_config,
)
from .console import configure_console, log, log_error, logs_to_stderr, reset_console
from .constants import EXIT_CODE_FAILURE, EXIT_CODE_INTERRUPT, EXIT_CODE_USAGE
from .context import AcquisitionContext
from .engine import acquire, resolve_request, scan_releases
from .errors import AcquisitionError, CLIError, ConfigurationError, OfflineError
from .models import DistributionRequest
from .releases import select_release
from .tools import find_jdk_tool, resolve_toolchain
from .utils import redact

app = typer.Typer(help="Acquire and cache Liberica JDK distributions")
cache_app = typer.Typer(help="Inspect the JDK cache")
auth_app = typer.Typer(help="GitHub token used for catalog requests")
config_app = typer.Typer(help="Configuration file helpers")
app.add_typer(cache_app, name="cache")
app.add_typer(auth_app, name="auth")
app.add_typer(config_app, name="config")


def build_context(args: SimpleNamespace) -> Tuple[AcquisitionContext, RequestDefaults]:
    config = load_config()
    settings = resolve_settings(
        config,
        cache_dir=getattr(args, "cache_dir", None),
        offline=getattr(args, "offline", None),
        disable_ssl_check=getattr(args, "disable_ssl_check", None),
        timeout_seconds=getattr(args, "timeout", None),
        proxy=getattr(args, "proxy", None),
    )
    if settings.proxy:
        log(f"using proxy {redact(settings.proxy)}")
    if not settings.verify_ssl:
        log("SSL certificate verification is disabled")
    ctx = AcquisitionContext(
        cache_root=prepare_cache_root(settings.cache_dir),
        offline=settings.offline,
        timeout_seconds=settings.timeout_seconds,
        proxy=settings.proxy,
        verify_ssl=settings.verify_ssl,
        catalog_url=settings.catalog_url,
        catalog_token=resolve_catalog_token(),
        progressbar=not getattr(args, "quiet", False),
    )
    return ctx, config.defaults


def build_request(args: SimpleNamespace, defaults: RequestDefaults) -> DistributionRequest:
    keep_archive = getattr(args, "keep_archive", None)
    if keep_archive is None:
        keep_archive = bool(defaults.keep_archive)
    return DistributionRequest(
        type=getattr(args, "type", None) or defaults.type or "",
        version=getattr(args, "version", None) or defaults.version or "",
        os=getattr(args, "os", None) or defaults.os or "",
        arch=getattr(args, "arch", None) or defaults.arch or "",
        keep_archive=keep_archive,
    )


def handle_acquire(args: SimpleNamespace) -> int:
    ctx, defaults = build_context(args)
    request = build_request(args, defaults)
    path = acquire(request, ctx)
    print(path)
    return 0


def handle_releases(args: SimpleNamespace) -> int:
    ctx, defaults = build_context(args)
    if ctx.offline:
        raise OfflineError("listing releases needs the network, but offline mode is active")
    request = resolve_request(build_request(args, defaults))
    with ctx.new_http_client() as client:
        catalog, matches = scan_releases(client, request, ctx)
    selected = select_release(matches)
    if getattr(args, "json", False):
        payload = {
            "request": request.describe(),
            "scanned": len(catalog),
            "matches": [
                {
                    "file_name": record.file_name,
                    "version": record.version,
                    "extension": record.archive_extension,
                    "size": record.size_bytes,
                    "url": record.download_link,
                    "selected": record is selected,
                }
                for record in matches
            ],
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0 if matches else EXIT_CODE_FAILURE
    if not matches:
        log_error(f"no release matches {request.describe()} (scanned {len(catalog)})")
        return EXIT_CODE_FAILURE
    for record in matches:
        marker = "*" if record is selected else " "
        print(f"{marker} {record.file_name}  {record.download_link}")
    return 0


def handle_which(args: SimpleNamespace) -> int:
    jdk_home: Optional[Path] = None
    if getattr(args, "jdk", None):
        jdk_home = Path(args.jdk).expanduser()
    elif getattr(args, "type", None) or getattr(args, "version", None):
        ctx, defaults = build_context(args)
        jdk_home = acquire(build_request(args, defaults), ctx)
    tool_path = find_jdk_tool(resolve_toolchain(jdk_home), args.tool)
    print(tool_path)
    return 0


def handle_cache_list(args: SimpleNamespace) -> int:
    settings = resolve_settings(load_config(), cache_dir=getattr(args, "cache_dir", None))
    entries = list_cache_entries(settings.cache_dir)
    if getattr(args, "json", False):
        payload = {"cache_dir": str(settings.cache_dir), "entries": entries}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0
    if not entries:
        log(f"no cached JDKs in {settings.cache_dir}")
        return 0
    for entry in entries:
        print(settings.cache_dir / entry)
    return 0


def handle_cache_path(args: SimpleNamespace) -> int:
    config = load_config()
    settings = resolve_settings(config, cache_dir=getattr(args, "cache_dir", None))
    if getattr(args, "type", None) or getattr(args, "version", None):
        request = resolve_request(build_request(args, config.defaults))
        print(settings.cache_dir / derive_cache_key(request))
    else:
        print(settings.cache_dir)
    return 0


def handle_auth_set_token(args: SimpleNamespace) -> int:
    token = (getattr(args, "token", None) or "").strip()
    if not token:
        raise CLIError("token is empty")
    persist_catalog_token(token)
    log(f"stored GitHub token {mask_token(token)}")
    return 0


def handle_auth_clear_token(_: SimpleNamespace) -> int:
    if clear_catalog_token():
        log("stored GitHub token removed")
    else:
        log("no stored GitHub token")
    return 0


def handle_auth_status(_: SimpleNamespace) -> int:
    token, source = resolve_catalog_token_with_source()
    if token:
        log(f"GitHub token {mask_token(token)} (from {source})")
    else:
        log("no GitHub token; catalog requests are anonymous and rate limited")
    return 0


def handle_config_init(args: SimpleNamespace) -> int:
    path = write_default_config(force=bool(getattr(args, "force", False)))
    log(f"wrote {path}")
    return 0


def handle_config_show(args: SimpleNamespace) -> int:
    path = resolve_config_path()
    values, sources = effective_config(load_config(path))
    if getattr(args, "json", False):
        payload = {"config_path": str(path), "values": values, "sources": sources}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0
    print(f"config file: {path}{'' if path.exists() else ' (missing)'}")
    for key in sorted(values):
        value = values[key]
        if key == "proxy" and value:
            value = redact(value)
        print(f"{key} = {value} ({sources.get(key, 'default')})")
    return 0


def _run(handler, args: SimpleNamespace) -> None:
    try:
        rc = handler(args)
    except ConfigurationError as exc:
        log_error(f"error: {exc}")
        raise typer.Exit(code=EXIT_CODE_USAGE) from exc
    except AcquisitionError as exc:
        log_error(f"error: {exc}")
        raise typer.Exit(code=EXIT_CODE_FAILURE) from exc
    except CLIError as exc:
        log_error(f"error: {exc}")
        raise typer.Exit(code=EXIT_CODE_USAGE) from exc
    raise typer.Exit(code=rc)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jdkcache {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def cli_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="show debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="only print results and errors"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="show the version and exit",
    ),
) -> None:
    reset_console()
    configure_console(quiet=quiet, verbose=verbose)
    ctx.obj = SimpleNamespace(quiet=quiet)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=EXIT_CODE_USAGE)


_TYPE_OPTION = typer.Option(None, "--type", help="distribution type, e.g. jdk, jre, jdk-full")
_VERSION_OPTION = typer.Option(None, "--version", help="version pattern, '*' and '?' allowed")
_OS_OPTION = typer.Option(None, "--os", help="target OS (default: host OS)")
_ARCH_OPTION = typer.Option(None, "--arch", help="target architecture, e.g. amd64, aarch64")
_CACHE_DIR_OPTION = typer.Option(None, "--cache-dir", help="JDK cache folder")
_OFFLINE_OPTION = typer.Option(None, "--offline/--online", help="only use cached JDKs")
_TIMEOUT_OPTION = typer.Option(None, "--timeout", help="connection timeout in seconds")
_PROXY_OPTION = typer.Option(None, "--proxy", help="proxy URL, e.g. http://host:3128")
_SSL_OPTION = typer.Option(
    None, "--disable-ssl-check/--verify-ssl", help="skip TLS certificate checks"
)


@app.command("acquire")
def acquire_command(
    ctx: typer.Context,
    jdk_type: Optional[str] = _TYPE_OPTION,
    version: Optional[str] = _VERSION_OPTION,
    os_name: Optional[str] = _OS_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
    keep_archive: Optional[bool] = typer.Option(
        None, "--keep-archive/--delete-archive", help="keep the downloaded archive in the cache"
    ),
    cache_dir: Optional[str] = _CACHE_DIR_OPTION,
    offline: Optional[bool] = _OFFLINE_OPTION,
    timeout: Optional[float] = _TIMEOUT_OPTION,
    proxy: Optional[str] = _PROXY_OPTION,
    disable_ssl_check: Optional[bool] = _SSL_OPTION,
) -> None:
    """Print the cached JDK folder, downloading it first if needed."""
    args = SimpleNamespace(
        type=jdk_type,
        version=version,
        os=os_name,
        arch=arch,
        keep_archive=keep_archive,
        cache_dir=cache_dir,
        offline=offline,
        timeout=timeout,
        proxy=proxy,
        disable_ssl_check=disable_ssl_check,
        quiet=ctx.obj.quiet,
    )
    with logs_to_stderr():
        _run(handle_acquire, args)


@app.command("releases")
def releases_command(
    ctx: typer.Context,
    jdk_type: Optional[str] = _TYPE_OPTION,
    version: Optional[str] = _VERSION_OPTION,
    os_name: Optional[str] = _OS_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
    cache_dir: Optional[str] = _CACHE_DIR_OPTION,
    timeout: Optional[float] = _TIMEOUT_OPTION,
    proxy: Optional[str] = _PROXY_OPTION,
    disable_ssl_check: Optional[bool] = _SSL_OPTION,
    json_output: bool = typer.Option(False, "--json", help="print JSON"),
) -> None:
    """List catalog releases matching the request; '*' marks the one acquire picks."""
    args = SimpleNamespace(
        type=jdk_type,
        version=version,
        os=os_name,
        arch=arch,
        cache_dir=cache_dir,
        offline=None,
        timeout=timeout,
        proxy=proxy,
        disable_ssl_check=disable_ssl_check,
        json=json_output,
        quiet=ctx.obj.quiet,
    )
    with logs_to_stderr():
        _run(handle_releases, args)


@app.command("which")
def which_command(
    ctx: typer.Context,
    tool: str = typer.Argument(..., help="tool name, e.g. jlink"),
    jdk: Optional[str] = typer.Option(None, "--jdk", help="JDK folder to search"),
    jdk_type: Optional[str] = _TYPE_OPTION,
    version: Optional[str] = _VERSION_OPTION,
    os_name: Optional[str] = _OS_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
    cache_dir: Optional[str] = _CACHE_DIR_OPTION,
    offline: Optional[bool] = _OFFLINE_OPTION,
) -> None:
    """Print the path of a JDK tool from --jdk, an acquired JDK or JAVA_HOME."""
    args = SimpleNamespace(
        tool=tool,
        jdk=jdk,
        type=jdk_type,
        version=version,
        os=os_name,
        arch=arch,
        cache_dir=cache_dir,
        offline=offline,
        quiet=ctx.obj.quiet,
    )
    with logs_to_stderr():
        _run(handle_which, args)


@cache_app.command("list")
def cache_list(
    cache_dir: Optional[str] = _CACHE_DIR_OPTION,
    json_output: bool = typer.Option(False, "--json", help="print JSON"),
) -> None:
    _run(handle_cache_list, SimpleNamespace(cache_dir=cache_dir, json=json_output))


@cache_app.command("path")
def cache_path(
    jdk_type: Optional[str] = _TYPE_OPTION,
    version: Optional[str] = _VERSION_OPTION,
    os_name: Optional[str] = _OS_OPTION,
    arch: Optional[str] = _ARCH_OPTION,
    cache_dir: Optional[str] = _CACHE_DIR_OPTION,
) -> None:
    """Print the cache folder, or the entry folder for a distribution."""
    args = SimpleNamespace(
        type=jdk_type, version=version, os=os_name, arch=arch, cache_dir=cache_dir
    )
    _run(handle_cache_path, args)


@auth_app.command("set-token")
def auth_set_token(
    token: str = typer.Option(
        ..., "--token", prompt="GitHub token", hide_input=True, help="personal access token"
    ),
) -> None:
    _run(handle_auth_set_token, SimpleNamespace(token=token))


@auth_app.command("clear-token")
def auth_clear_token() -> None:
    _run(handle_auth_clear_token, SimpleNamespace())


@auth_app.command("status")
def auth_status() -> None:
    _run(handle_auth_status, SimpleNamespace())


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="overwrite an existing file"),
) -> None:
    _run(handle_config_init, SimpleNamespace(force=force))


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="print JSON"),
) -> None:
    _run(handle_config_show, SimpleNamespace(json=json_output))


def main(argv: Optional[Sequence[str]] = None) -> int:
    command = typer.main.get_command(app)
    try:
        rc = command.main(
            args=list(argv) if argv is not None else None,
            prog_name="jdkcache",
            standalone_mode=False,
        )
    except SystemExit as exc:
        return int(exc.code or 0)
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except (KeyboardInterrupt, typer.Abort):
        log_error("interrupted")
        return EXIT_CODE_INTERRUPT
    return rc if isinstance(rc, int) else 0


if __name__ == "__main__":
    sys.exit(main())
