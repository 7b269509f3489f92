import os
import stat
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from claude_code_mcp.config import BridgeConfig
from claude_code_mcp.process import ExecutionResult
from claude_code_mcp.tool import ClaudeCodeTool

TESTS_DIR = Path(__file__).parent
PROJECT_ROOT = TESTS_DIR.parent
FAKE_CLAUDE = TESTS_DIR / "fake_claude.py"

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX executables")


@pytest.fixture
def fake_cli(tmp_path):
    """An executable that behaves like the Claude CLI (see fake_claude.py)."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    path = bin_dir / "claude"
    path.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_CLAUDE}" "$@"\n')
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def home_dir(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return str(home)


@pytest.fixture
def runner():
    """A command runner double that succeeds with stdout "ok"."""
    return AsyncMock(return_value=ExecutionResult(stdout="ok", stderr="", exit_code=0))


@pytest.fixture
def make_tool(runner, home_dir):
    """
    Build a ClaudeCodeTool around the runner double. Inside a running loop the
    version probe also goes through the runner, as a --version call.
    """
    def _make(cli_path="/opt/tool/bin", **config_kwargs):
        return ClaudeCodeTool(
            BridgeConfig(**config_kwargs),
            cli_path_resolver=lambda name: cli_path,
            runner=runner,
            home=home_dir,
        )
    return _make


@pytest.fixture
def bridge_env(fake_cli, home_dir):
    """Environment for a bridge subprocess wired to the fake CLI."""
    pythonpath = os.pathsep.join(
        p for p in [str(PROJECT_ROOT), os.environ.get("PYTHONPATH", "")] if p
    )
    return {
        "CLAUDE_CLI_NAME": fake_cli,
        "HOME": home_dir,
        "PYTHONPATH": pythonpath,
        "MCP_CLAUDE_DEBUG": "true",
    }
