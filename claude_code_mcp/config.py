"""
Bridge configuration, read from the environment.

    CLAUDE_CLI_NAME             executable override (bare name or absolute path)
    MCP_CLAUDE_DEBUG            "true" turns on debug logging
    CLAUDE_CLI_TIMEOUT_SECONDS  per-call timeout in seconds (default 3600)
    MCP_CLAUDE_TEST_MODE        "true" keeps the process alive after SIGINT
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping

from claude_code_mcp.constants import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

CLI_NAME_ENV = "CLAUDE_CLI_NAME"
DEBUG_ENV = "MCP_CLAUDE_DEBUG"
TIMEOUT_ENV = "CLAUDE_CLI_TIMEOUT_SECONDS"
TEST_MODE_ENV = "MCP_CLAUDE_TEST_MODE"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


def parse_timeout_seconds(value: str | None) -> int:
    """Parse the timeout variable, falling back to the default on bad input."""
    if not value:
        logger.debug(f"Using default Claude CLI timeout: {DEFAULT_TIMEOUT_SECONDS} seconds")
        return DEFAULT_TIMEOUT_SECONDS

    try:
        seconds = int(value.strip())
    except ValueError:
        seconds = 0

    if seconds <= 0:
        logger.warning(
            f"Invalid value for {TIMEOUT_ENV}: \"{value}\". "
            f"Using default: {DEFAULT_TIMEOUT_SECONDS} seconds."
        )
        return DEFAULT_TIMEOUT_SECONDS

    logger.debug(f"Using custom Claude CLI timeout: {seconds} seconds from {TIMEOUT_ENV}")
    return seconds


@dataclass(frozen=True)
class BridgeConfig:
    """Settings for one bridge process."""
    cli_name: str | None = None
    debug: bool = False
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    test_mode: bool = False

    @property
    def timeout_ms(self) -> int:
        return self.timeout_seconds * 1000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BridgeConfig":
        env = os.environ if environ is None else environ
        return cls(
            cli_name=env.get(CLI_NAME_ENV) or None,
            debug=env_flag(env.get(DEBUG_ENV)),
            timeout_seconds=parse_timeout_seconds(env.get(TIMEOUT_ENV)),
            test_mode=env_flag(env.get(TEST_MODE_ENV)),
        )


def configure_logging(debug: bool = False) -> None:
    """Send log records to stderr; stdout is reserved for protocol messages."""
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)
