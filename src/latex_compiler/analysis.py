"""Diagnostic extraction from Tectonic output."""

from __future__ import annotations

import re
from typing import Callable, Literal, Optional

from latex_compiler.models import Diagnostic

# Type alias for a rule handler function
RuleHandler = Callable[[re.Match[str]], list[Diagnostic]]

_UNDEFINED_CS = re.compile(r"Undefined control sequence")
_MISSING_FILE = re.compile(r"File `([^']+)' not found")
_RUNAWAY = re.compile(r"Runaway argument")


def _classify(message: str) -> tuple[str, str]:
    """Return (code, human message) for a TeX error message."""
    missing = _MISSING_FILE.search(message)
    if missing:
        name = missing.group(1)
        kind = "package" if name.endswith((".sty", ".cls")) else "input"
        return (
            f"missing-{kind}",
            f"Missing {kind} file '{name}'. Check the name or install the package.",
        )
    if _UNDEFINED_CS.search(message):
        return (
            "undefined-control-sequence",
            "Undefined control sequence. "
            "Check for typos or missing `\\usepackage`/`\\newcommand`.",
        )
    if _RUNAWAY.search(message):
        return (
            "runaway-argument",
            "Runaway argument. Likely an unclosed brace or environment; "
            "check for missing '}' or \\end{...} above.",
        )
    return "tex-error", message.strip()


class LogAnalyzer:
    """Turns Tectonic's stdout/stderr text into diagnostics."""

    def __init__(self) -> None:
        self.rules: list[tuple[re.Pattern[str], RuleHandler]] = []
        self._register_default_rules()

    def _register_default_rules(self) -> None:
        # error: doc.tex:3: Undefined control sequence
        self.add_rule(
            re.compile(
                r"^(?P<level>error|warning): (?P<file>[^\s:][^:\n]*\.\w+):(?P<line>\d+): (?P<msg>.+)$",
                re.MULTILINE,
            ),
            self._handle_located,
        )
        # error: halted on potentially-recoverable error as specified
        self.add_rule(
            re.compile(r"^error: (?!\S[^:\n]*\.\w+:\d+:)(?P<msg>.+)$", re.MULTILINE),
            self._handle_engine_error,
        )
        # Raw TeX log excerpts: "! Undefined control sequence."
        self.add_rule(
            re.compile(r"^!\s*(?P<msg>.+)$", re.MULTILINE),
            self._handle_tex_error,
        )

    def add_rule(self, pattern: re.Pattern[str], handler: RuleHandler) -> None:
        """Add a new analysis rule.

        Args:
            pattern: Regex pattern to match in the output
            handler: Function that takes a match and returns a list of Diagnostic objects
        """
        self.rules.append((pattern, handler))

    def _handle_located(self, match: re.Match[str]) -> list[Diagnostic]:
        level: Literal["error", "warning"] = match.group("level")  # type: ignore[assignment]
        message = match.group("msg").strip()
        if level == "warning":
            code, text = "tex-warning", message
        else:
            code, text = _classify(message)
        return [
            Diagnostic(
                level=level,
                code=code,
                message=text,
                raw=match.group(0).strip(),
                file=match.group("file"),
                line=int(match.group("line")),
            )
        ]

    def _handle_engine_error(self, match: re.Match[str]) -> list[Diagnostic]:
        message = match.group("msg").strip()
        code, text = _classify(message)
        if code == "tex-error":
            code = "tectonic-error"
        return [Diagnostic(level="error", code=code, message=text, raw=match.group(0).strip())]

    def _handle_tex_error(self, match: re.Match[str]) -> list[Diagnostic]:
        message = match.group("msg").strip()
        code, text = _classify(message)
        return [Diagnostic(level="error", code=code, message=text, raw=match.group(0).strip())]

    def analyse(self, log: str) -> list[Diagnostic]:
        """Analyse compiler output and extract diagnostics.

        Args:
            log: Combined stdout and stderr text

        Returns:
            Diagnostics in the order rules were registered
        """
        diagnostics: list[Diagnostic] = []
        seen: set[tuple[str, Optional[str], Optional[int], str]] = set()

        for pattern, handler in self.rules:
            for match in pattern.finditer(log):
                for diagnostic in handler(match):
                    key = (diagnostic.code, diagnostic.file, diagnostic.line, diagnostic.raw)
                    if key in seen:
                        continue
                    seen.add(key)
                    diagnostics.append(diagnostic)

        return diagnostics


# Global analyzer instance
_analyzer = LogAnalyzer()


def analyse_log(log: str) -> list[Diagnostic]:
    """Extract diagnostics from Tectonic output."""
    return _analyzer.analyse(log)
