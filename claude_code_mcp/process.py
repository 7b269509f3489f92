"""
Run an external command as a child process with a deadline.

The command and its arguments are passed to the OS as a vector, never through
a shell. Output is read incrementally from both pipes while the process runs,
so a timed-out or failed run still reports what it printed.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from claude_code_mcp.errors import ExecutionError, FailureKind

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class ExecutionResult:
    """Output of a command that exited with status 0."""
    stdout: str
    stderr: str
    exit_code: int = 0


# Signature shared by run_command and its test doubles
CommandRunner = Callable[..., Awaitable[ExecutionResult]]


def format_timeout(timeout_ms: int) -> str:
    """2000 -> '2s', 1500 -> '1.5s'."""
    return f"{timeout_ms / 1000:g}s"


async def _pump(stream: asyncio.StreamReader, chunks: list[str], label: str) -> None:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(_READ_CHUNK)
        if not data:
            break
        text = decoder.decode(data)
        chunks.append(text)
        if label == "stderr":
            logger.debug(f"stderr chunk: {text}")
    tail = decoder.decode(b"", final=True)
    if tail:
        chunks.append(tail)


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


async def run_command(
    command: str,
    args: Sequence[str],
    *,
    timeout_ms: int,
    cwd: str | None = None,
) -> ExecutionResult:
    """
    Run `command` with `args` and wait for it to finish.

    Args:
        command: Executable path or bare name (looked up on PATH)
        args: Arguments, passed through literally
        timeout_ms: Deadline in milliseconds, must be positive
        cwd: Working directory for the child

    Returns:
        ExecutionResult when the process exits with status 0.

    Raises:
        ExecutionError: tagged NOT_FOUND, SPAWN_ERROR, TIMEOUT or NON_ZERO_EXIT
    """
    if timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

    logger.debug(f"Running command: {command} {' '.join(args)}")

    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        # A missing working directory is reported with the directory as filename
        if cwd is not None and e.filename == cwd:
            raise ExecutionError(
                f"Failed to start {command}: {e}", FailureKind.SPAWN_ERROR, command
            ) from e
        raise ExecutionError(
            f"Command not found: {command}", FailureKind.NOT_FOUND, command
        ) from e
    except OSError as e:
        raise ExecutionError(
            f"Failed to start {command}: {e}", FailureKind.SPAWN_ERROR, command
        ) from e

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []

    async def _complete() -> int:
        await asyncio.gather(
            _pump(process.stdout, stdout_chunks, "stdout"),
            _pump(process.stderr, stderr_chunks, "stderr"),
        )
        return await process.wait()

    try:
        exit_code = await asyncio.wait_for(_complete(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        await _kill(process)
        stdout = "".join(stdout_chunks)
        stderr = "".join(stderr_chunks)
        logger.debug(f"Command timed out after {format_timeout(timeout_ms)}: {command}")
        raise ExecutionError(
            f"Command timed out after {format_timeout(timeout_ms)}: {command}",
            FailureKind.TIMEOUT,
            command,
            stdout=stdout.strip(),
            stderr=stderr.strip(),
        ) from None
    finally:
        if process.returncode is None:
            await _kill(process)

    stdout = "".join(stdout_chunks)
    stderr = "".join(stderr_chunks)
    logger.debug(f"Command exited with code {exit_code}: {command}")

    if exit_code != 0:
        raise ExecutionError(
            f"Command failed: {command}. Exit code: {exit_code}. Stderr: {stderr.strip()}",
            FailureKind.NON_ZERO_EXIT,
            command,
            stdout=stdout.strip(),
            stderr=stderr.strip(),
            exit_code=exit_code,
        )

    return ExecutionResult(stdout=stdout, stderr=stderr, exit_code=0)
