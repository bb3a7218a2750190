"""latex_compiler: compile LaTeX to PDF with a bundled or system Tectonic binary."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from latex_compiler.core import LatexCompiler, parse_version
from latex_compiler.errors import (
    DirectoryObstructedError,
    ExecutableNotFoundError,
    InvalidRequestError,
    LatexCompilerError,
)
from latex_compiler.models import (
    CompileOutcome,
    CompileRequest,
    CompilerOptions,
    Diagnostic,
    ResolvedExecutable,
)
from latex_compiler.resolver import resolve_executable

__version__ = "0.1.0"
__all__ = [
    "CompileOutcome",
    "CompileRequest",
    "CompilerOptions",
    "Diagnostic",
    "DirectoryObstructedError",
    "ExecutableNotFoundError",
    "InvalidRequestError",
    "LatexCompiler",
    "LatexCompilerError",
    "ResolvedExecutable",
    "compile_latex",
    "compile_latex_sync",
    "create_compiler",
    "get_version",
    "is_available",
    "parse_version",
    "resolve_executable",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())


def create_compiler(options: Optional[CompilerOptions] = None, **fields: Any) -> LatexCompiler:
    """Build a compiler; keyword fields populate ``CompilerOptions``."""
    return LatexCompiler(options or CompilerOptions(**fields))


async def compile_latex(request: Optional[CompileRequest] = None, **fields: Any) -> CompileOutcome:
    """Compile once with a fresh compiler.

    Keyword fields populate ``CompileRequest``; the request's
    ``executable_path`` also drives executable resolution.
    """
    request = request or CompileRequest(**fields)
    request.validate()
    compiler = create_compiler(executable_path=request.executable_path)
    return await compiler.compile(request)


def compile_latex_sync(request: Optional[CompileRequest] = None, **fields: Any) -> CompileOutcome:
    """Blocking wrapper around :func:`compile_latex`."""
    return asyncio.run(compile_latex(request, **fields))


def is_available(options: Optional[CompilerOptions] = None, **fields: Any) -> bool:
    """Return True if a Tectonic executable can be resolved."""
    try:
        return create_compiler(options, **fields).is_available()
    except LatexCompilerError:
        return False


async def get_version(options: Optional[CompilerOptions] = None, **fields: Any) -> Optional[str]:
    """Return the Tectonic version string, or None when unavailable."""
    try:
        compiler = create_compiler(options, **fields)
    except LatexCompilerError:
        return None
    return await compiler.get_version()
