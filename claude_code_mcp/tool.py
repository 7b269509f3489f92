"""
The claude_code tool: runs the Claude CLI once per call.

Each call is validated, given a working directory, and executed as

    <cli> --dangerously-skip-permissions -p <prompt>

The CLI's stdout becomes the tool result; every failure is reported as an
McpError so the server can answer with a JSON-RPC error.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from claude_code_mcp.config import BridgeConfig
from claude_code_mcp.constants import (
    PROMPT_FLAG,
    SERVER_VERSION,
    SKIP_PERMISSIONS_FLAG,
    TOOL_DESCRIPTION_TEMPLATE,
    TOOL_NAME,
)
from claude_code_mcp.errors import ConfigurationError, ErrorCode, ExecutionError, McpError
from claude_code_mcp.process import CommandRunner, format_timeout, run_command
from claude_code_mcp.resolver import find_claude_cli
from claude_code_mcp.server import ToolHandler
from claude_code_mcp.version import VersionProber

logger = logging.getLogger(__name__)


class ToolState(str, Enum):
    CONSTRUCTED = "constructed"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class ValidArguments:
    prompt: str
    work_folder: str | None = None


@dataclass(frozen=True)
class InvalidArguments:
    reason: str


ValidationResult = Union[ValidArguments, InvalidArguments]


def validate_arguments(arguments: Any) -> ValidationResult:
    """Check tools/call arguments for a string prompt and an optional workFolder."""
    if not isinstance(arguments, dict):
        return InvalidArguments(
            "Missing or invalid required parameter: prompt (arguments must be an object "
            f"with a string \"prompt\" property) for {TOOL_NAME} tool"
        )

    prompt = arguments.get("prompt")
    if not isinstance(prompt, str):
        return InvalidArguments(
            f"Missing or invalid required parameter: prompt (must be a string) for {TOOL_NAME} tool"
        )
    if not prompt.strip():
        return InvalidArguments(f"Parameter prompt must not be empty for {TOOL_NAME} tool")

    work_folder = arguments.get("workFolder")
    if not isinstance(work_folder, str) or not work_folder:
        work_folder = None

    return ValidArguments(prompt=prompt, work_folder=work_folder)


def build_cli_args(prompt: str) -> list[str]:
    return [SKIP_PERMISSIONS_FLAG, PROMPT_FLAG, prompt]


class ClaudeCodeTool(ToolHandler):
    """
    Delegates a natural-language task to the Claude CLI.

    The CLI path is resolved once, in the constructor. The version probe is
    started in the background as soon as an event loop is available and only
    matters for the tool description; calls never wait for it.
    """

    name = TOOL_NAME
    parameters = {
        "prompt": {
            "type": "string",
            "description": "The detailed natural language prompt for Claude to execute.",
        },
        "workFolder": {
            "type": "string",
            "description": (
                "Mandatory when using file operations or referencing any file. "
                "The working directory for the Claude CLI execution. Must be an absolute path."
            ),
        },
    }
    required = ["prompt"]

    def __init__(
        self,
        config: BridgeConfig | None = None,
        cli_path_resolver: Callable[[str | None], str] = find_claude_cli,
        runner: CommandRunner = run_command,
        home: str | None = None,
    ):
        self.config = config or BridgeConfig()
        self.state = ToolState.CONSTRUCTED
        self.config_error: ConfigurationError | None = None
        self._runner = runner
        self._home = home

        try:
            self.cli_path = cli_path_resolver(self.config.cli_name)
            logger.info(f"Using Claude CLI command/path: {self.cli_path}")
        except ConfigurationError as e:
            logger.error(f"Failed to initialize Claude CLI path: {e}")
            self.cli_path = ""
            self.config_error = e

        self.prober = VersionProber(self.cli_path, runner=runner)
        self._init_task: asyncio.Future | None = None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; version probe deferred until ready()")
        else:
            self._start_init()

    @property
    def home(self) -> str:
        return self._home or os.path.expanduser("~")

    @property
    def cli_version(self) -> str:
        return self.prober.version

    def _start_init(self) -> None:
        self.state = ToolState.INITIALIZING
        self._init_task = asyncio.ensure_future(self.prober.probe())
        self._init_task.add_done_callback(self._on_init_done)

    def _on_init_done(self, task: asyncio.Future) -> None:
        self.state = ToolState.READY

    async def ready(self) -> None:
        """Wait for the startup version probe to finish."""
        if self._init_task is None:
            self._start_init()
        await self._init_task

    async def get_schema(self) -> dict:
        if self._init_task is not None and not self._init_task.done():
            await self._init_task
        version = await self.prober.ensure()

        schema = await super().get_schema()
        schema["description"] = (
            TOOL_DESCRIPTION_TEMPLATE
            .replace("{{SERVER_VERSION}}", SERVER_VERSION)
            .replace("{{CLAUDE_CLI_VERSION}}", version)
        )
        return schema

    def resolve_work_folder(self, work_folder: str | None) -> str:
        """Working directory for a call: the requested folder if it exists, else home."""
        home = self.home
        if not work_folder:
            logger.debug(f"No workFolder provided, using default CWD: {home}")
            return home

        resolved = os.path.abspath(work_folder)
        logger.debug(f"Specified workFolder: {work_folder}, resolved to: {resolved}")
        if os.path.isdir(resolved):
            return resolved

        logger.warning(
            f"Specified workFolder does not exist: {resolved}. Using default: {home}"
        )
        return home

    async def handle(self, arguments: Any) -> dict:
        validated = validate_arguments(arguments)
        if isinstance(validated, InvalidArguments):
            raise McpError(ErrorCode.INVALID_PARAMS, validated.reason)

        cwd = self.resolve_work_folder(validated.work_folder)

        if not self.cli_path:
            raise McpError(
                ErrorCode.INTERNAL_ERROR,
                f"Claude CLI execution failed: Claude CLI path is not configured. {self.config_error}",
            )

        args = build_cli_args(validated.prompt)
        logger.debug(f"Invoking Claude CLI: {self.cli_path} {' '.join(args)} (cwd: {cwd})")

        try:
            result = await self._runner(
                self.cli_path, args, timeout_ms=self.config.timeout_ms, cwd=cwd
            )
        except ExecutionError as e:
            logger.debug(f"Error executing Claude CLI: {e}")
            raise McpError(ErrorCode.INTERNAL_ERROR, self._failure_message(e)) from e
        except Exception as e:
            logger.debug(f"Error executing Claude CLI: {e!r}")
            raise McpError(
                ErrorCode.INTERNAL_ERROR, f"Claude CLI execution failed: {str(e) or 'Unknown error'}"
            ) from e

        logger.debug(f"Claude CLI stdout: {result.stdout.strip()}")
        if result.stderr:
            logger.debug(f"Claude CLI stderr: {result.stderr.strip()}")

        return {"content": [{"type": "text", "text": result.stdout}]}

    def _failure_message(self, error: ExecutionError) -> str:
        details = str(error) or "Unknown error"
        if error.stderr:
            details += f"\nStderr: {error.stderr}"
        if error.stdout:
            details += f"\nStdout: {error.stdout}"

        if error.is_timeout:
            return (
                f"Claude CLI command timed out after {format_timeout(self.config.timeout_ms)}. "
                f"Details: {details}"
            )
        return f"Claude CLI execution failed: {details}"
