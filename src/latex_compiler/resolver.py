"""Locate a usable Tectonic executable.

Strategies are tried in order and the first hit wins:

1. an explicit override path,
2. a bundled binary under ``bin/<platform>-<arch>/``,
3. on macOS, the bundled binary for the other architecture (Rosetta),
4. any bundled ``bin/<platform>-*/`` directory holding the executable,
5. the optional ``latex_compiler_bin_<platform>_<arch>`` helper package,
6. ``tectonic`` on the system PATH.
"""

from __future__ import annotations

import importlib.util
import logging
import os
import platform as _platform
import shutil
import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from latex_compiler.errors import ExecutableNotFoundError
from latex_compiler.models import ResolvedExecutable, ResolutionStrategy

logger = logging.getLogger(__name__)

BINARY_NAME = "tectonic"
DEFAULT_BIN_DIR = Path(__file__).parent / "bin"

# Platform/arch pairs for which a helper package is published.
_RUNTIME_PACKAGES = {
    ("win32", "x64"),
    ("darwin", "x64"),
    ("darwin", "arm64"),
    ("linux", "x64"),
}

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def normalize_arch(machine: str) -> str:
    """Map a machine identifier onto ``x64``/``arm64`` where possible."""
    lowered = machine.lower()
    return _ARCH_ALIASES.get(lowered, lowered)


def current_platform() -> str:
    """Return the platform identifier (``linux``, ``darwin``, ``win32``, ...)."""
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def executable_name(platform: str) -> str:
    return f"{BINARY_NAME}.exe" if platform == "win32" else BINARY_NAME


def runtime_package_name(platform: str, arch: str) -> Optional[str]:
    """Return the import name of the helper package for a platform, if any."""
    if (platform, arch) not in _RUNTIME_PACKAGES:
        return None
    return f"latex_compiler_bin_{platform}_{arch}"


def make_executable(path: Path, platform: Optional[str] = None) -> None:
    """Add execute permission bits, ignoring failures."""
    if (platform or current_platform()) == "win32":
        return
    try:
        mode = path.stat().st_mode
        os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as exc:
        logger.debug("Could not mark %s executable: %s", path, exc)


@dataclass(frozen=True)
class ResolutionContext:
    """Inputs shared by every resolution strategy."""

    override: Optional[Path]
    bin_dir: Path
    platform: str
    arch: str

    @property
    def exe_name(self) -> str:
        return executable_name(self.platform)


Strategy = Callable[[ResolutionContext], Optional[ResolvedExecutable]]


def _candidate(path: Path, strategy: ResolutionStrategy) -> Optional[ResolvedExecutable]:
    if path.is_file():
        return ResolvedExecutable(path=path, strategy=strategy)
    return None


def from_override(ctx: ResolutionContext) -> Optional[ResolvedExecutable]:
    if ctx.override is None:
        return None
    return _candidate(ctx.override.expanduser().absolute(), "override")


def from_bundled_match(ctx: ResolutionContext) -> Optional[ResolvedExecutable]:
    return _candidate(ctx.bin_dir / f"{ctx.platform}-{ctx.arch}" / ctx.exe_name, "bundled-match")


def from_bundled_fallback_arch(ctx: ResolutionContext) -> Optional[ResolvedExecutable]:
    # Rosetta: the interpreter may report a different arch than the installed binary.
    if ctx.platform != "darwin":
        return None
    alt_arch = "arm64" if ctx.arch == "x64" else "x64"
    return _candidate(
        ctx.bin_dir / f"{ctx.platform}-{alt_arch}" / ctx.exe_name, "bundled-fallback-arch"
    )


def from_bundled_scan(ctx: ResolutionContext) -> Optional[ResolvedExecutable]:
    if not ctx.bin_dir.is_dir():
        return None
    try:
        entries = sorted(ctx.bin_dir.iterdir())
    except OSError as exc:
        logger.debug("Could not scan %s: %s", ctx.bin_dir, exc)
        return None
    for entry in entries:
        if entry.name.startswith(f"{ctx.platform}-"):
            found = _candidate(entry / ctx.exe_name, "bundled-scan")
            if found:
                return found
    return None


def from_runtime_package(ctx: ResolutionContext) -> Optional[ResolvedExecutable]:
    module_name = runtime_package_name(ctx.platform, ctx.arch)
    if module_name is None:
        return None
    try:
        spec = importlib.util.find_spec(module_name)
    except (ImportError, ValueError):
        return None
    if spec is None:
        return None
    if spec.submodule_search_locations:
        package_dir = Path(next(iter(spec.submodule_search_locations)))
    elif spec.origin:
        package_dir = Path(spec.origin).parent
    else:
        return None
    return _candidate(package_dir / "bin" / ctx.exe_name, "runtime-package")


def from_system_path(ctx: ResolutionContext) -> Optional[ResolvedExecutable]:
    found = shutil.which(BINARY_NAME)
    if not found:
        return None
    return _candidate(Path(found), "system-path")


STRATEGIES: tuple[Strategy, ...] = (
    from_override,
    from_bundled_match,
    from_bundled_fallback_arch,
    from_bundled_scan,
    from_runtime_package,
    from_system_path,
)


def resolve_executable(
    override: Union[str, Path, None] = None,
    *,
    bin_dir: Optional[Path] = None,
    system: Optional[str] = None,
    machine: Optional[str] = None,
    strategies: tuple[Strategy, ...] = STRATEGIES,
) -> ResolvedExecutable:
    """Find the Tectonic executable.

    Args:
        override: User-supplied executable path, used when it exists
        bin_dir: Root of bundled binaries (defaults to the package ``bin`` dir)
        system: Platform identifier, detected when omitted
        machine: CPU architecture, detected when omitted
        strategies: Ordered strategy functions to try

    Returns:
        The first executable found

    Raises:
        ExecutableNotFoundError: If every strategy fails
    """
    ctx = ResolutionContext(
        override=Path(override) if override is not None else None,
        bin_dir=Path(bin_dir) if bin_dir is not None else DEFAULT_BIN_DIR,
        platform=system or current_platform(),
        arch=normalize_arch(machine or _platform.machine()),
    )

    for strategy in strategies:
        resolved = strategy(ctx)
        if resolved is None:
            logger.debug("Resolver strategy %s found nothing", strategy.__name__)
            continue
        make_executable(resolved.path, ctx.platform)
        logger.info("Using Tectonic at %s (%s)", resolved.path, resolved.strategy)
        return resolved

    hint = f" (override {ctx.override} does not exist)" if ctx.override else ""
    package = runtime_package_name(ctx.platform, ctx.arch)
    raise ExecutableNotFoundError(
        f"Tectonic executable not found for {ctx.platform}-{ctx.arch}{hint}. "
        + (f"Install the {package.replace('_', '-')} package, " if package else "")
        + "put `tectonic` on PATH, or pass an explicit executable path."
    )
