"""Shared fixtures for latex_compiler tests."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from latex_compiler.core import LatexCompiler
from latex_compiler.models import CompilerOptions, ExecutionResult

FAKE_PDF = b"%PDF-1.5\n% fake output\n%%EOF\n"

SIMPLE_TEX = r"\documentclass{article}\begin{document}Hello\end{document}"


class FakeExecutor:
    """Stands in for ProcessExecutor: records calls and writes a fake PDF
    the way Tectonic does (``<outdir>/<source stem>.pdf``)."""

    def __init__(
        self,
        exit_code: int = 0,
        produce_pdf: bool = True,
        stdout: str = "note: Running TeX ...\n",
        stderr: str = "",
        error: Optional[str] = None,
    ) -> None:
        self.exit_code = exit_code
        self.produce_pdf = produce_pdf
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.calls: list[dict] = []
        self.run_result = ExecutionResult(exit_code=0, stdout="")

    async def execute(self, executable, source_file, outdir, on_stdout=None, on_stderr=None, timeout=None):
        self.calls.append(
            {
                "executable": Path(executable),
                "source_file": Path(source_file),
                "source_text": Path(source_file).read_text(encoding="utf-8"),
                "outdir": Path(outdir),
                "timeout": timeout,
            }
        )
        if on_stdout and self.stdout:
            on_stdout(self.stdout)
        if on_stderr and self.stderr:
            on_stderr(self.stderr)
        if self.produce_pdf:
            (Path(outdir) / f"{Path(source_file).stem}.pdf").write_bytes(FAKE_PDF)
        return ExecutionResult(
            exit_code=self.exit_code, stdout=self.stdout, stderr=self.stderr, error=self.error
        )

    async def run(self, command, on_stdout=None, on_stderr=None, timeout=None):
        self.calls.append({"command": list(command), "timeout": timeout})
        return self.run_result


@pytest.fixture
def fake_tectonic(tmp_path: Path) -> Path:
    """Create a placeholder executable file."""
    exe = tmp_path / "tools" / "tectonic"
    exe.parent.mkdir()
    exe.write_text("#!/bin/sh\nexit 0\n")
    return exe


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def compiler(fake_tectonic: Path, scratch_root: Path, executor: FakeExecutor) -> LatexCompiler:
    options = CompilerOptions(executable_path=fake_tectonic, scratch_root=scratch_root)
    return LatexCompiler(options, executor=executor)


@pytest.fixture
def tex_file(tmp_path: Path) -> Path:
    """Create a temporary .tex file for testing."""
    path = tmp_path / "docs" / "report.tex"
    path.parent.mkdir()
    path.write_text(SIMPLE_TEX)
    return path
