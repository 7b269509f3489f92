"""Probe and cache the Claude CLI's reported version."""

from __future__ import annotations

import logging

from claude_code_mcp.constants import (
    CLI_NOT_FOUND_VERSION,
    UNKNOWN_VERSION,
    VERSION_CHECK_FAILED,
    VERSION_FLAG,
    VERSION_PROBE_TIMEOUT_MS,
)
from claude_code_mcp.process import CommandRunner, run_command

logger = logging.getLogger(__name__)


class VersionProber:
    """
    Runs `<cli> --version` and keeps the answer.

    The version only feeds the published tool description, so probing never
    raises: a failed probe stores a sentinel that a later ensure() retries.
    """

    def __init__(
        self,
        cli_path: str,
        runner: CommandRunner = run_command,
        timeout_ms: int = VERSION_PROBE_TIMEOUT_MS,
    ):
        self.cli_path = cli_path
        self.version = UNKNOWN_VERSION
        self._runner = runner
        self._timeout_ms = timeout_ms

    @property
    def needs_probe(self) -> bool:
        return self.version in (UNKNOWN_VERSION, VERSION_CHECK_FAILED)

    async def probe(self) -> str:
        if not self.cli_path:
            self.version = CLI_NOT_FOUND_VERSION
            return self.version

        logger.debug(f"Fetching Claude CLI version from: {self.cli_path}")
        try:
            result = await self._runner(
                self.cli_path, [VERSION_FLAG], timeout_ms=self._timeout_ms
            )
        except Exception as e:
            self.version = VERSION_CHECK_FAILED
            logger.error(f"Failed to fetch Claude CLI version: {e}")
            return self.version

        self.version = result.stdout.strip() or UNKNOWN_VERSION
        logger.debug(f"Claude CLI version: {self.version}")
        return self.version

    async def ensure(self) -> str:
        """Return the cached version, probing again if it is unknown or failed."""
        if self.needs_probe:
            await self.probe()
        return self.version
