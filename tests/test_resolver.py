"""Tests for Tectonic executable resolution."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from latex_compiler.errors import ExecutableNotFoundError
from latex_compiler.models import ResolvedExecutable
from latex_compiler.resolver import (
    executable_name,
    make_executable,
    normalize_arch,
    resolve_executable,
    runtime_package_name,
)


@pytest.fixture(autouse=True)
def no_system_tectonic(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide any tectonic installed on the machine running the tests."""
    monkeypatch.setattr("latex_compiler.resolver.shutil.which", lambda name: None)


def _place(bin_dir: Path, target: str, name: str = "tectonic") -> Path:
    exe = bin_dir / target / name
    exe.parent.mkdir(parents=True)
    exe.write_text("")
    return exe


@pytest.mark.parametrize(
    ("machine", "expected"),
    [
        ("x86_64", "x64"),
        ("AMD64", "x64"),
        ("aarch64", "arm64"),
        ("arm64", "arm64"),
        ("riscv64", "riscv64"),
    ],
)
def test_normalize_arch(machine: str, expected: str) -> None:
    """Machine names map to the bundled arch names."""
    assert normalize_arch(machine) == expected


def test_executable_name() -> None:
    """Windows binaries carry the .exe suffix."""
    assert executable_name("win32") == "tectonic.exe"
    assert executable_name("linux") == "tectonic"
    assert executable_name("darwin") == "tectonic"


def test_runtime_package_name() -> None:
    """Helper packages exist for the published targets only."""
    assert runtime_package_name("linux", "x64") == "latex_compiler_bin_linux_x64"
    assert runtime_package_name("darwin", "arm64") == "latex_compiler_bin_darwin_arm64"
    assert runtime_package_name("linux", "arm64") is None


def test_override_wins(tmp_path: Path) -> None:
    """An existing override is used first."""
    bin_dir = tmp_path / "bin"
    _place(bin_dir, "linux-x64")
    override = tmp_path / "my-tectonic"
    override.write_text("")

    resolved = resolve_executable(override, bin_dir=bin_dir, system="linux", machine="x86_64")

    assert resolved.path == override
    assert resolved.strategy == "override"


def test_missing_override_falls_through(tmp_path: Path) -> None:
    """A missing override falls back to the bundled binary."""
    bin_dir = tmp_path / "bin"
    bundled = _place(bin_dir, "linux-x64")

    resolved = resolve_executable(tmp_path / "nope", bin_dir=bin_dir, system="linux", machine="amd64")

    assert resolved.path == bundled
    assert resolved.strategy == "bundled-match"


def test_bundled_windows_uses_exe_suffix(tmp_path: Path) -> None:
    """Bundled Windows binaries are found by their .exe name."""
    bin_dir = tmp_path / "bin"
    bundled = _place(bin_dir, "win32-x64", "tectonic.exe")

    resolved = resolve_executable(bin_dir=bin_dir, system="win32", machine="AMD64")

    assert resolved.path == bundled


def test_darwin_falls_back_to_other_arch(tmp_path: Path) -> None:
    """macOS can use the other architecture's binary."""
    bin_dir = tmp_path / "bin"
    bundled = _place(bin_dir, "darwin-arm64")

    resolved = resolve_executable(bin_dir=bin_dir, system="darwin", machine="x86_64")

    assert resolved.path == bundled
    assert resolved.strategy == "bundled-fallback-arch"


def test_linux_does_not_use_arch_fallback_but_scans(tmp_path: Path) -> None:
    """Linux skips the arch fallback but scans its platform dirs."""
    bin_dir = tmp_path / "bin"
    bundled = _place(bin_dir, "linux-arm64")

    resolved = resolve_executable(bin_dir=bin_dir, system="linux", machine="x86_64")

    assert resolved.path == bundled
    assert resolved.strategy == "bundled-scan"


def test_scan_ignores_other_platforms(tmp_path: Path) -> None:
    """Binaries for other platforms are never picked."""
    bin_dir = tmp_path / "bin"
    _place(bin_dir, "darwin-x64")

    with pytest.raises(ExecutableNotFoundError, match="linux-x64"):
        resolve_executable(bin_dir=bin_dir, system="linux", machine="x86_64")


def test_runtime_package(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """An installed helper package supplies the binary."""
    package_dir = tmp_path / "site" / "latex_compiler_bin_linux_x64"
    exe = package_dir / "bin" / "tectonic"
    exe.parent.mkdir(parents=True)
    (package_dir / "__init__.py").write_text("")
    exe.write_text("")
    monkeypatch.syspath_prepend(str(tmp_path / "site"))

    resolved = resolve_executable(bin_dir=tmp_path / "no-bin", system="linux", machine="x86_64")

    assert resolved.path == exe
    assert resolved.strategy == "runtime-package"


def test_system_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Tectonic on PATH is the last resort."""
    on_path = tmp_path / "usr" / "bin" / "tectonic"
    on_path.parent.mkdir(parents=True)
    on_path.write_text("")
    monkeypatch.setattr("latex_compiler.resolver.shutil.which", lambda name: str(on_path))

    resolved = resolve_executable(bin_dir=tmp_path / "no-bin", system="linux", machine="x86_64")

    assert resolved.path == on_path
    assert resolved.strategy == "system-path"


def test_system_path_entry_must_exist(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """A PATH hit that does not exist is ignored."""
    monkeypatch.setattr(
        "latex_compiler.resolver.shutil.which", lambda name: str(tmp_path / "gone" / "tectonic")
    )

    with pytest.raises(ExecutableNotFoundError):
        resolve_executable(bin_dir=tmp_path / "no-bin", system="linux", machine="x86_64")


def test_not_found_message_is_actionable(tmp_path: Path) -> None:
    """The error names the helper package and the override."""
    with pytest.raises(ExecutableNotFoundError) as excinfo:
        resolve_executable(tmp_path / "missing", bin_dir=tmp_path / "no-bin", system="linux", machine="x86_64")

    message = str(excinfo.value)
    assert "latex-compiler-bin-linux-x64" in message
    assert "missing" in message


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
def test_selected_binary_is_made_executable(tmp_path: Path) -> None:
    """The chosen binary gets its execute bit."""
    override = tmp_path / "tectonic"
    override.write_text("")
    os.chmod(override, 0o644)

    resolve_executable(override, system="linux", machine="x86_64")

    assert override.stat().st_mode & stat.S_IXUSR


def test_make_executable_tolerates_failure(tmp_path: Path) -> None:
    """chmod failures are ignored."""
    make_executable(tmp_path / "does-not-exist", "linux")


def test_custom_strategy_order(tmp_path: Path) -> None:
    """Strategies run in the order given."""
    exe = tmp_path / "custom"
    exe.write_text("")

    def first(ctx):
        return None

    def second(ctx):
        return ResolvedExecutable(path=exe, strategy="override")

    resolved = resolve_executable(strategies=(first, second), system="linux", machine="x86_64")

    assert resolved.path == exe
