"""Tests for the claude_code tool: validation, working directory, error mapping."""

import asyncio
import logging
import os
import re
from unittest.mock import AsyncMock, call

import pytest

from claude_code_mcp.config import BridgeConfig
from claude_code_mcp.constants import (
    CLI_NOT_FOUND_VERSION,
    SERVER_VERSION,
    VERSION_CHECK_FAILED,
)
from claude_code_mcp.errors import ConfigurationError, ErrorCode, ExecutionError, FailureKind, McpError
from claude_code_mcp.process import ExecutionResult
from claude_code_mcp.server import StdioToolServer
from claude_code_mcp.tool import (
    ClaudeCodeTool,
    InvalidArguments,
    ToolState,
    ValidArguments,
    build_cli_args,
    validate_arguments,
)

FLAGS = ["--dangerously-skip-permissions", "-p"]


def prompt_calls(runner: AsyncMock) -> list:
    """Runner calls made for tool calls, leaving out the --version probe."""
    return [c for c in runner.await_args_list if c.args[1] != ["--version"]]


class TestValidateArguments:

    def test_prompt_only(self):
        assert validate_arguments({"prompt": "hello"}) == ValidArguments("hello", None)

    def test_prompt_and_work_folder(self):
        assert validate_arguments({"prompt": "hi", "workFolder": "/src"}) == ValidArguments("hi", "/src")

    def test_non_string_work_folder_ignored(self):
        assert validate_arguments({"prompt": "hi", "workFolder": 42}) == ValidArguments("hi", None)

    @pytest.mark.parametrize("arguments", [None, "prompt", ["prompt"], {}, {"prompt": 5}, {"prompt": None}, {"prompt": ""}, {"prompt": "   "}])
    def test_invalid(self, arguments):
        assert isinstance(validate_arguments(arguments), InvalidArguments)


def test_cli_args_end_with_prompt():
    assert build_cli_args("do it") == FLAGS + ["do it"]


class TestClaudeCodeTool:

    def test_constructed_outside_loop_defers_probe(self, make_tool, runner):
        tool = make_tool()
        assert tool.state is ToolState.CONSTRUCTED
        runner.assert_not_called()

    @pytest.mark.asyncio
    async def test_ready_after_probe(self, make_tool, runner):
        runner.return_value = ExecutionResult(stdout="1.0.0\n", stderr="")
        tool = make_tool()
        assert tool.state is ToolState.INITIALIZING

        await tool.ready()
        assert tool.state is ToolState.READY
        assert tool.cli_version == "1.0.0"

    @pytest.mark.asyncio
    async def test_absolute_override_scenario(self, home_dir, runner):
        tool = ClaudeCodeTool(BridgeConfig(cli_name="/opt/tool/bin"), runner=runner, home=home_dir)
        assert tool.cli_path == "/opt/tool/bin"

        result = await tool.handle({"prompt": "hello"})

        assert result == {"content": [{"type": "text", "text": "ok"}]}
        assert prompt_calls(runner) == [
            call("/opt/tool/bin", FLAGS + ["hello"], timeout_ms=3_600_000, cwd=home_dir)
        ]

    @pytest.mark.asyncio
    async def test_stdout_returned_exactly_and_stderr_dropped(self, make_tool, runner):
        runner.return_value = ExecutionResult(stdout="  line one\n\n line two \n", stderr="warn")
        tool = make_tool()

        result = await tool.handle({"prompt": "go"})
        assert result["content"] == [{"type": "text", "text": "  line one\n\n line two \n"}]

    @pytest.mark.asyncio
    async def test_existing_work_folder_used(self, make_tool, runner, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        tool = make_tool()

        await tool.handle({"prompt": "go", "workFolder": str(project)})
        assert prompt_calls(runner)[0].kwargs["cwd"] == str(project)

    @pytest.mark.asyncio
    async def test_relative_work_folder_resolved(self, make_tool, runner, tmp_path, monkeypatch):
        (tmp_path / "project").mkdir()
        monkeypatch.chdir(tmp_path)
        tool = make_tool()

        await tool.handle({"prompt": "go", "workFolder": "project"})
        assert prompt_calls(runner)[0].kwargs["cwd"] == os.path.join(os.getcwd(), "project")

    @pytest.mark.asyncio
    async def test_missing_work_folder_falls_back_to_home(self, make_tool, runner, home_dir, tmp_path, caplog):
        missing = str(tmp_path / "missing")
        tool = make_tool()

        with caplog.at_level(logging.WARNING, logger="claude_code_mcp.tool"):
            await tool.handle({"prompt": "go", "workFolder": missing})

        assert prompt_calls(runner)[0].kwargs["cwd"] == home_dir
        warning = next(r for r in caplog.records if r.levelno == logging.WARNING)
        assert missing in warning.getMessage()
        assert home_dir in warning.getMessage()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arguments", [None, "text", {}, {"prompt": 1}, {"prompt": ""}])
    async def test_invalid_arguments_never_spawn(self, make_tool, runner, arguments):
        tool = make_tool()
        with pytest.raises(McpError) as exc_info:
            await tool.handle(arguments)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
        assert prompt_calls(runner) == []

    @pytest.mark.asyncio
    async def test_timeout_error_message(self, make_tool, runner):
        runner.side_effect = ExecutionError(
            "Command timed out after 2s: /opt/tool/bin",
            FailureKind.TIMEOUT,
            "/opt/tool/bin",
            stdout="partial output",
            stderr="still working",
        )
        tool = make_tool(timeout_seconds=2)

        with pytest.raises(McpError) as exc_info:
            await tool.handle({"prompt": "slow"})

        err = exc_info.value
        assert err.code == ErrorCode.INTERNAL_ERROR
        assert re.search(r"timed out after 2s", err.message)
        assert "Stdout: partial output" in err.message
        assert "Stderr: still working" in err.message

    @pytest.mark.asyncio
    async def test_non_zero_exit_message(self, make_tool, runner):
        runner.side_effect = ExecutionError(
            "Command failed: /opt/tool/bin. Exit code: 3. Stderr: boom",
            FailureKind.NON_ZERO_EXIT,
            "/opt/tool/bin",
            stderr="boom",
            exit_code=3,
        )
        tool = make_tool()

        with pytest.raises(McpError) as exc_info:
            await tool.handle({"prompt": "fail"})

        err = exc_info.value
        assert err.code == ErrorCode.INTERNAL_ERROR
        assert err.message.startswith("Claude CLI execution failed: ")
        assert "Exit code: 3" in err.message
        assert "Stderr: boom" in err.message
        assert "timed out" not in err.message

    @pytest.mark.asyncio
    async def test_not_found_names_command(self, make_tool, runner):
        runner.side_effect = ExecutionError(
            "Command not found: claude", FailureKind.NOT_FOUND, "claude"
        )
        tool = make_tool(cli_path="claude")

        with pytest.raises(McpError) as exc_info:
            await tool.handle({"prompt": "hi"})
        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert "Command not found: claude" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_spawn_error_reported_as_execution_failure(self, make_tool, runner):
        runner.side_effect = ExecutionError(
            "Failed to start process: Permission denied", FailureKind.SPAWN_ERROR, "/opt/tool/bin"
        )
        tool = make_tool()

        with pytest.raises(McpError) as exc_info:
            await tool.handle({"prompt": "hi"})
        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert exc_info.value.message.startswith(
            "Claude CLI execution failed: Failed to start process: Permission denied"
        )
        assert "timed out" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_configuration_error_fails_calls_immediately(self, runner, home_dir):
        def bad_resolver(name):
            raise ConfigurationError("Invalid CLAUDE_CLI_NAME: Relative paths are not allowed")

        tool = ClaudeCodeTool(BridgeConfig(cli_name="./claude"), cli_path_resolver=bad_resolver,
                              runner=runner, home=home_dir)
        assert tool.cli_path == ""
        await tool.ready()
        assert tool.cli_version == CLI_NOT_FOUND_VERSION

        with pytest.raises(McpError) as exc_info:
            await tool.handle({"prompt": "hi"})
        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert "Relative paths are not allowed" in exc_info.value.message
        runner.assert_not_called()

    @pytest.mark.asyncio
    async def test_schema_description_has_versions(self, make_tool, runner):
        runner.return_value = ExecutionResult(stdout="9.9.9 (Claude Code)\n", stderr="")
        tool = make_tool()

        schema = await tool.get_schema()

        assert schema["name"] == "claude_code"
        assert schema["inputSchema"]["required"] == ["prompt"]
        assert set(schema["inputSchema"]["properties"]) == {"prompt", "workFolder"}
        assert f"MCP Server Version: {SERVER_VERSION}" in schema["description"]
        assert "Claude CLI Version: 9.9.9 (Claude Code)" in schema["description"]
        assert "{{" not in schema["description"]

    @pytest.mark.asyncio
    async def test_schema_reprobes_failed_version(self, make_tool, runner):
        runner.side_effect = [
            ExecutionError("Command not found: x", FailureKind.NOT_FOUND, "x"),
            ExecutionResult(stdout="3.0.0", stderr=""),
        ]
        tool = make_tool()
        await tool.ready()
        assert tool.cli_version == VERSION_CHECK_FAILED

        schema = await tool.get_schema()
        assert "Claude CLI Version: 3.0.0" in schema["description"]

    @pytest.mark.asyncio
    async def test_calls_run_concurrently_without_a_cap(self, make_tool, runner):
        active = 0
        peak = 0

        async def slow_runner(command, args, *, timeout_ms, cwd=None):
            nonlocal active, peak
            if args == ["--version"]:
                return ExecutionResult(stdout="1.0.0", stderr="")
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1
            return ExecutionResult(stdout=args[-1], stderr="")

        runner.side_effect = slow_runner
        tool = make_tool()

        results = await asyncio.gather(*[tool.handle({"prompt": f"task {i}"}) for i in range(5)])

        assert [r["content"][0]["text"] for r in results] == [f"task {i}" for i in range(5)]
        assert peak == 5


class TestToolRouting:

    @pytest.mark.asyncio
    async def test_unknown_tool_never_spawns(self, make_tool, runner):
        server = StdioToolServer(write=lambda line: None)
        server.register(make_tool())

        with pytest.raises(McpError) as exc_info:
            await server._dispatch("tools/call", {"name": "other_tool", "arguments": {"prompt": "x"}})

        assert exc_info.value.code == ErrorCode.METHOD_NOT_FOUND
        assert exc_info.value.message == "Tool other_tool not found"
        assert prompt_calls(runner) == []
