"""Exceptions raised by latex_compiler.

Only structurally invalid requests, an unresolvable binary, and an output
path that cannot be turned into a directory are raised. Everything about
the compilation itself is reported through ``CompileOutcome``.
"""

from __future__ import annotations


class LatexCompilerError(Exception):
    """Base class for all latex_compiler errors."""


class ExecutableNotFoundError(LatexCompilerError):
    """Raised when no usable Tectonic executable can be located."""


class InvalidRequestError(LatexCompilerError, ValueError):
    """Raised when a compile request is malformed."""


class DirectoryObstructedError(LatexCompilerError, OSError):
    """Raised when a required directory cannot be created, even after
    removing non-directory entries in its way."""
