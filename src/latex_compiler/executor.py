"""Run the Tectonic subprocess and stream its output."""

from __future__ import annotations

import asyncio
import codecs
import inspect
import logging
from pathlib import Path
from typing import Optional, Sequence

from latex_compiler.models import SENTINEL_EXIT_CODE, ExecutionResult, OutputObserver

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096


def build_command(executable: Path, source_file: Path, outdir: Path) -> list[str]:
    """Build the argument vector: tectonic SOURCE --outdir=OUTDIR."""
    return [str(executable), str(source_file), f"--outdir={outdir}"]


async def _pump(
    stream: Optional[asyncio.StreamReader],
    chunks: list[str],
    observer: Optional[OutputObserver],
) -> None:
    """Read ``stream`` to EOF, buffering and forwarding decoded chunks."""
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(_CHUNK_SIZE)
        text = decoder.decode(data, final=not data)
        if text:
            chunks.append(text)
            if observer is not None:
                result = observer(text)
                if inspect.isawaitable(result):
                    await result
        if not data:
            return


async def _reap(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


class ProcessExecutor:
    """Spawns Tectonic and collects its exit code and output."""

    async def execute(
        self,
        executable: Path,
        source_file: Path,
        outdir: Path,
        on_stdout: Optional[OutputObserver] = None,
        on_stderr: Optional[OutputObserver] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        """Compile ``source_file`` into ``outdir``.

        Launch failures and timeouts are reported in the result with a
        sentinel exit code instead of being raised. Exceptions raised by an
        observer propagate once both output readers have stopped and the
        child process has been killed.

        Args:
            executable: Tectonic binary
            source_file: The .tex file to compile
            outdir: Directory Tectonic writes its PDF into
            on_stdout: Called with every decoded stdout chunk
            on_stderr: Called with every decoded stderr chunk
            timeout: Maximum execution time in seconds (None for no timeout)

        Returns:
            ExecutionResult with exit code and the full stdout/stderr text
        """
        command = build_command(executable, source_file, outdir)
        return await self.run(command, on_stdout=on_stdout, on_stderr=on_stderr, timeout=timeout)

    async def run(
        self,
        command: Sequence[str],
        on_stdout: Optional[OutputObserver] = None,
        on_stderr: Optional[OutputObserver] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        """Run an arbitrary command with the same streaming and failure rules."""
        logger.debug("Running %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.debug("Failed to launch %s: %s", command[0], exc)
            return ExecutionResult(exit_code=SENTINEL_EXIT_CODE, error=str(exc))

        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []

        async def _communicate() -> int:
            pumps = [
                asyncio.ensure_future(_pump(process.stdout, stdout_chunks, on_stdout)),
                asyncio.ensure_future(_pump(process.stderr, stderr_chunks, on_stderr)),
            ]
            try:
                await asyncio.gather(*pumps)
            finally:
                # A failed or cancelled pump must not leave its sibling running.
                for task in pumps:
                    task.cancel()
                await asyncio.gather(*pumps, return_exceptions=True)
            return await process.wait()

        try:
            exit_code = await asyncio.wait_for(_communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %s seconds", command[0], timeout)
            return ExecutionResult(
                exit_code=SENTINEL_EXIT_CODE,
                stdout="".join(stdout_chunks),
                stderr="".join(stderr_chunks),
                error=f"Compilation timed out after {timeout} seconds",
                timed_out=True,
            )
        finally:
            await _reap(process)

        return ExecutionResult(
            exit_code=exit_code,
            stdout="".join(stdout_chunks),
            stderr="".join(stderr_chunks),
        )
