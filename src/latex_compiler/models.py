"""Data models for latex_compiler requests, outcomes and diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Literal, Optional

from latex_compiler.errors import InvalidRequestError

# Called with each decoded chunk of subprocess output. May return an awaitable.
OutputObserver = Callable[[str], Any]

ResolutionStrategy = Literal[
    "override",
    "bundled-match",
    "bundled-fallback-arch",
    "bundled-scan",
    "runtime-package",
    "system-path",
]

# Exit code reported when the process never produced one of its own.
SENTINEL_EXIT_CODE = -1


@dataclass
class Diagnostic:
    """A diagnostic message extracted from Tectonic output."""

    level: Literal["error", "warning", "info"]
    code: str
    message: str
    raw: str
    file: Optional[str] = None
    line: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert diagnostic to a dictionary for JSON serialization."""
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "raw": self.raw,
            "file": self.file,
            "line": self.line,
        }


@dataclass(frozen=True)
class ResolvedExecutable:
    """Path to a Tectonic binary and the strategy that found it."""

    path: Path
    strategy: ResolutionStrategy

    def exists(self) -> bool:
        return self.path.exists()


@dataclass
class CompilerOptions:
    """Construction options for a ``LatexCompiler``.

    Attributes:
        executable_path: Explicit Tectonic binary, tried before anything else.
        scratch_root: Directory holding per-call working directories.
            Defaults to ``<system temp>/latex-compiler``.
        bin_dir: Root of the bundled ``<platform>-<arch>`` binary directories.
            Defaults to the ``bin`` directory shipped inside the package.
        timeout: Default per-compile time limit in seconds (None for no limit).
    """

    executable_path: Optional[Path] = None
    scratch_root: Optional[Path] = None
    bin_dir: Optional[Path] = None
    timeout: Optional[float] = None


@dataclass
class CompileRequest:
    """One compilation task.

    Exactly one of ``source_text`` and ``source_file`` must be given.
    ``output_file`` wins over ``output_dir``; when neither is set the PDF
    lands next to ``source_file``, or in the scratch root for inline text.
    """

    source_text: Optional[str] = None
    source_file: Optional[Path] = None
    output_dir: Optional[Path] = None
    output_file: Optional[Path] = None
    return_buffer: bool = False
    on_stdout: Optional[OutputObserver] = None
    on_stderr: Optional[OutputObserver] = None
    executable_path: Optional[Path] = None
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        for name in ("source_file", "output_dir", "output_file", "executable_path"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))

    def validate(self) -> None:
        """Check the request invariants.

        Raises:
            InvalidRequestError: If neither or both sources are given, the
                source file does not exist, or the output file is a directory.
        """
        if self.source_text is None and self.source_file is None:
            raise InvalidRequestError("Either source_text or source_file must be provided")
        if self.source_text is not None and self.source_file is not None:
            raise InvalidRequestError("source_text and source_file are mutually exclusive")
        if self.source_file is not None:
            if not self.source_file.exists():
                raise InvalidRequestError(f"LaTeX file not found: {self.source_file}")
            if not self.source_file.is_file():
                raise InvalidRequestError(f"LaTeX source is not a file: {self.source_file}")
        if self.output_file is not None and self.output_file.expanduser().is_dir():
            raise InvalidRequestError(f"Output file is a directory: {self.output_file}")


@dataclass
class ExecutionResult:
    """Raw result of running the Tectonic subprocess once."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None


@dataclass
class CompileOutcome:
    """Result of a compile call.

    On success exactly one of ``pdf_path`` and ``pdf_buffer`` is set.
    On failure ``exit_code`` is set and ``error`` may describe the cause.
    """

    status: Literal["success", "failed"]
    pdf_path: Optional[Path] = None
    pdf_buffer: Optional[bytes] = None
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    error: Optional[str] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    executable: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        """Convert outcome to a dictionary for JSON serialization.

        The PDF bytes are not embedded, only their size.
        """
        return {
            "status": self.status,
            "pdf_path": str(self.pdf_path) if self.pdf_path else None,
            "pdf_size": len(self.pdf_buffer) if self.pdf_buffer is not None else None,
            "exit_code": self.exit_code,
            "error": self.error,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "executable": str(self.executable) if self.executable else None,
        }
