"""Locating JDK tools (jlink, jdeps, ...) inside an acquired or local JDK."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from .console import log_debug
from .engine import host_os
from .errors import CLIError


def executable_name(tool: str) -> str:
    if host_os() == "windows" and not tool.lower().endswith(".exe"):
        return f"{tool}.exe"
    return tool


class Toolchain(Protocol):
    def find_tool(self, name: str) -> Optional[Path]: ...


@dataclass(frozen=True)
class JdkHomeToolchain:
    home: Path

    def __str__(self) -> str:
        return f"JDK {self.home}"

    def find_tool(self, name: str) -> Optional[Path]:
        candidate = self.home / "bin" / executable_name(name)
        if candidate.is_file():
            return candidate
        # macOS bundles keep the JDK under Contents/Home.
        bundled = self.home / "Contents" / "Home" / "bin" / executable_name(name)
        if bundled.is_file():
            return bundled
        return None


@dataclass(frozen=True)
class ToolchainUnavailable:
    reason: str

    def find_tool(self, name: str) -> Optional[Path]:
        return None


ResolvedToolchain = Union[JdkHomeToolchain, ToolchainUnavailable]


def resolve_toolchain(jdk_home: Optional[Path] = None) -> ResolvedToolchain:
    """Pick the JDK to take tools from: explicit home, then JAVA_HOME."""
    if jdk_home is not None:
        if not jdk_home.is_dir():
            return ToolchainUnavailable(f"JDK folder does not exist: {jdk_home}")
        return JdkHomeToolchain(jdk_home)
    java_home = (os.environ.get("JAVA_HOME") or "").strip()
    if java_home:
        home = Path(java_home).expanduser()
        if home.is_dir():
            log_debug(f"using JAVA_HOME: {home}")
            return JdkHomeToolchain(home)
        return ToolchainUnavailable(f"JAVA_HOME points to a missing folder: {home}")
    return ToolchainUnavailable("no JDK folder given and JAVA_HOME is not set")


def find_jdk_tool(toolchain: Toolchain, name: str) -> Path:
    if isinstance(toolchain, ToolchainUnavailable):
        raise CLIError(f"can't look up '{name}': {toolchain.reason}")
    path = toolchain.find_tool(name)
    if path is None:
        raise CLIError(f"can't find {name} in {toolchain}")
    log_debug(f"found tool '{name}' -> {path}")
    return path
