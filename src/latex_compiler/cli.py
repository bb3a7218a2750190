"""CLI interface for latex_compiler."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from latex_compiler.core import LatexCompiler
from latex_compiler.errors import LatexCompilerError
from latex_compiler.models import CompileOutcome, CompileRequest, CompilerOptions

app = typer.Typer(
    name="latex-compiler",
    help="Compile LaTeX to PDF with a bundled or system Tectonic binary",
    no_args_is_help=True,
)

TectonicOption = Annotated[
    Optional[Path],
    typer.Option("--tectonic", help="Path to the Tectonic executable to use"),
]


def _echo_stream(text: str) -> None:
    typer.echo(text, nl=False, err=True)


def _print_diagnostics(outcome: CompileOutcome) -> None:
    """Print diagnostics in human-readable format."""
    if outcome.error:
        typer.echo(f"ERROR: {outcome.error}", err=True)
    for diag in outcome.diagnostics:
        level_marker = {
            "error": "ERROR",
            "warning": "WARNING",
            "info": "INFO",
        }.get(diag.level, "INFO")
        location = f" {diag.file}:{diag.line}" if diag.file else ""
        typer.echo(f"{level_marker} [{diag.code}]{location}: {diag.message}", err=True)
    if not outcome.diagnostics and outcome.stderr:
        typer.echo(outcome.stderr[-2000:], err=True)


def _build_compiler(tectonic: Optional[Path], timeout: Optional[float] = None) -> LatexCompiler:
    try:
        return LatexCompiler(CompilerOptions(executable_path=tectonic, timeout=timeout))
    except LatexCompilerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log resolution and cleanup details"),
    ] = False,
) -> None:
    """latex-compiler command group."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("compile")
def compile_command(
    source: Annotated[
        str,
        typer.Argument(help="Path to the input .tex file, or '-' to read LaTeX from stdin"),
    ],
    outdir: Annotated[
        Optional[Path],
        typer.Option("--outdir", "-d", help="Directory for the generated PDF"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Exact path of the generated PDF"),
    ] = None,
    tectonic: TectonicOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output result as JSON"),
    ] = False,
    stream: Annotated[
        bool,
        typer.Option("--stream/--no-stream", help="Echo Tectonic output while it runs"),
    ] = False,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", "-t", help="Maximum compilation time in seconds"),
    ] = None,
) -> None:
    """Compile a LaTeX document to PDF.

    Examples:
        latex-compiler compile document.tex
        latex-compiler compile document.tex --outdir=./output
        cat document.tex | latex-compiler compile - -o out.pdf --json
    """
    if source == "-":
        request = CompileRequest(source_text=sys.stdin.read())
    else:
        request = CompileRequest(source_file=Path(source))
    request.output_dir = outdir
    request.output_file = output
    if stream and not json_output:
        request.on_stdout = _echo_stream
        request.on_stderr = _echo_stream

    compiler = _build_compiler(tectonic, timeout)
    try:
        outcome = asyncio.run(compiler.compile(request))
    except LatexCompilerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    # Handle JSON output
    if json_output:
        typer.echo(json.dumps(outcome.to_dict(), indent=2))
        raise typer.Exit(code=0 if outcome.success else 2)

    # Human-readable output
    if outcome.success and outcome.pdf_path:
        typer.echo(f"OK: {outcome.pdf_path}")
        return
    typer.echo(f"Compilation failed (exit code {outcome.exit_code}).", err=True)
    _print_diagnostics(outcome)
    raise typer.Exit(code=2)


@app.command()
def version(tectonic: TectonicOption = None) -> None:
    """Print the Tectonic version."""
    compiler = _build_compiler(tectonic)
    found = asyncio.run(compiler.get_version())
    if found is None:
        typer.echo("Could not determine the Tectonic version.", err=True)
        raise typer.Exit(code=1)
    typer.echo(found)


@app.command()
def check(tectonic: TectonicOption = None) -> None:
    """Show which Tectonic executable would be used."""
    compiler = _build_compiler(tectonic)
    typer.echo(f"{compiler.executable.path} ({compiler.executable.strategy})")


if __name__ == "__main__":
    app()
