"""Core compilation logic for latex_compiler."""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path
from typing import Optional

from latex_compiler.analysis import analyse_log
from latex_compiler.executor import ProcessExecutor
from latex_compiler.models import (
    SENTINEL_EXIT_CODE,
    CompileOutcome,
    CompileRequest,
    CompilerOptions,
    ExecutionResult,
    ResolvedExecutable,
)
from latex_compiler.resolver import resolve_executable
from latex_compiler.workdir import ScratchSpace, ensure_directory, remove_quietly

logger = logging.getLogger(__name__)

PDF_SUFFIX = ".pdf"
TEX_SUFFIX = ".tex"
GENERATED_PREFIX = "texput-"

VERSION_TIMEOUT = 10.0
VERIFY_TIMEOUT = 5.0

_VERSION_PATTERN = re.compile(r"tectonic[-\s]+v?(\d[^\s-]*)", re.IGNORECASE)


def parse_version(text: str) -> Optional[str]:
    """Extract the version token following the product name.

    ``tectonic-0.15.0+20251006`` and ``Tectonic 0.15.0`` both parse.
    """
    match = _VERSION_PATTERN.search(text)
    return match.group(1) if match else None


def artifact_path(source_file: Path, outdir: Path) -> Path:
    """Where Tectonic writes the PDF for ``source_file`` under ``outdir``."""
    return outdir / f"{source_file.stem}{PDF_SUFFIX}"


def _failed(result: ExecutionResult, executable: Path, error: Optional[str] = None) -> CompileOutcome:
    exit_code = result.exit_code if result.exit_code != 0 else SENTINEL_EXIT_CODE
    return CompileOutcome(
        status="failed",
        exit_code=exit_code,
        error=error or result.error,
        stdout=result.stdout,
        stderr=result.stderr,
        diagnostics=analyse_log(result.stdout + result.stderr),
        executable=executable,
    )


class LatexCompiler:
    """Compiles LaTeX sources with a resolved Tectonic binary.

    The executable is resolved when the compiler is built, so a missing
    binary fails fast with ``ExecutableNotFoundError``.
    """

    def __init__(
        self,
        options: Optional[CompilerOptions] = None,
        *,
        executor: Optional[ProcessExecutor] = None,
        scratch: Optional[ScratchSpace] = None,
    ) -> None:
        self.options = options or CompilerOptions()
        self.executable = resolve_executable(
            self.options.executable_path, bin_dir=self.options.bin_dir
        )
        self.executor = executor or ProcessExecutor()
        self.scratch = scratch or ScratchSpace(self.options.scratch_root)

    @property
    def executable_path(self) -> Path:
        return self.executable.path

    def is_available(self) -> bool:
        """Check that the resolved executable is still on disk."""
        return self.executable.exists()

    async def get_version(self) -> Optional[str]:
        """Return the Tectonic version, or None if it cannot be determined."""
        result = await self.executor.run(
            [str(self.executable_path), "--version"], timeout=VERSION_TIMEOUT
        )
        if result.error is not None:
            logger.debug("Version query failed: %s", result.error)
            return None
        return parse_version(result.stdout) or parse_version(result.stderr)

    async def verify(self) -> bool:
        """Run ``tectonic --version`` and report whether it exits cleanly."""
        result = await self.executor.run(
            [str(self.executable_path), "--version"], timeout=VERIFY_TIMEOUT
        )
        return result.ok

    def _executable_for(self, request: CompileRequest) -> ResolvedExecutable:
        if request.executable_path is None or request.executable_path == self.options.executable_path:
            return self.executable
        return resolve_executable(request.executable_path, bin_dir=self.options.bin_dir)

    def _final_pdf_path(self, request: CompileRequest, source_file: Path) -> Path:
        if request.output_file is not None:
            return request.output_file.expanduser().absolute()
        if request.output_dir is not None:
            outdir = request.output_dir.expanduser().absolute()
        elif request.source_file is not None:
            outdir = source_file.parent
        else:
            outdir = self.scratch.root.absolute()
        return artifact_path(source_file, outdir)

    async def compile(self, request: CompileRequest) -> CompileOutcome:
        """Compile a LaTeX document to PDF.

        Args:
            request: What to compile and where the PDF should go

        Returns:
            CompileOutcome with the PDF path or bytes on success, and the
            exit code, output and diagnostics on failure

        Raises:
            InvalidRequestError: If the request has no usable source or its
                output file is a directory
            ExecutableNotFoundError: If the request's executable override
                cannot be resolved
            DirectoryObstructedError: If the output directory cannot be created
        """
        request.validate()
        executable = self._executable_for(request)
        timeout = request.timeout if request.timeout is not None else self.options.timeout

        with self.scratch.call_dir() as workdir:
            generated: Optional[Path] = None
            scratch_pdf: Optional[Path] = None
            try:
                if request.source_file is not None:
                    source_file = request.source_file.expanduser().absolute()
                else:
                    generated = workdir / f"{GENERATED_PREFIX}{time.time_ns()}{TEX_SUFFIX}"
                    generated.write_text(request.source_text or "", encoding="utf-8")
                    source_file = generated

                final_pdf = self._final_pdf_path(request, source_file)
                ensure_directory(final_pdf.parent)

                result = await self.executor.execute(
                    executable.path,
                    source_file,
                    workdir,
                    on_stdout=request.on_stdout,
                    on_stderr=request.on_stderr,
                    timeout=timeout,
                )
                if not result.ok:
                    return _failed(result, executable.path)

                scratch_pdf = artifact_path(source_file, workdir)
                if not scratch_pdf.is_file():
                    return _failed(result, executable.path, error="PDF file was not generated")

                if request.return_buffer:
                    pdf_buffer = scratch_pdf.read_bytes()
                    return CompileOutcome(
                        status="success",
                        pdf_buffer=pdf_buffer,
                        stdout=result.stdout,
                        stderr=result.stderr,
                        exit_code=result.exit_code,
                        executable=executable.path,
                    )

                try:
                    if final_pdf.exists() or final_pdf.is_symlink():
                        final_pdf.unlink()
                    shutil.move(str(scratch_pdf), str(final_pdf))
                except OSError as exc:
                    logger.warning("Could not write %s: %s", final_pdf, exc)
                    return _failed(result, executable.path, error=f"Could not write {final_pdf}: {exc}")
                logger.debug("Wrote %s", final_pdf)
                return CompileOutcome(
                    status="success",
                    pdf_path=final_pdf,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    exit_code=result.exit_code,
                    executable=executable.path,
                )
            finally:
                remove_quietly(generated)
                remove_quietly(scratch_pdf)
