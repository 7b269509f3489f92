"""
Locate the Claude CLI executable.

Resolution order:
1. An absolute CLAUDE_CLI_NAME override is used as-is.
2. An override with a path separator or relative prefix is rejected.
3. ~/.claude/local/claude is used when it exists.
4. Otherwise the bare name ("claude" or the override) is returned and the
   operating system's PATH lookup decides at spawn time.
"""

from __future__ import annotations

import logging
import os

from claude_code_mcp.constants import DEFAULT_CLI_NAME, LOCAL_INSTALL_PARTS
from claude_code_mcp.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _has_path_component(name: str) -> bool:
    if name in (".", ".."):
        return True
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    return any(sep in name for sep in separators)


def local_install_path(home: str | None = None) -> str:
    """Path of the per-user local install of the CLI."""
    home = home or os.path.expanduser("~")
    return os.path.join(home, *LOCAL_INSTALL_PARTS)


def find_claude_cli(cli_name: str | None = None, home: str | None = None) -> str:
    """
    Determine the command or path used to run the Claude CLI.

    Args:
        cli_name: Override from CLAUDE_CLI_NAME, if any
        home: Home directory to look for the local install in

    Returns:
        An absolute path or a bare command name.

    Raises:
        ConfigurationError: the override is a relative path
    """
    logger.debug("Attempting to find Claude CLI...")

    if cli_name:
        logger.debug(f"Using custom Claude CLI name from CLAUDE_CLI_NAME: {cli_name}")
        if os.path.isabs(cli_name):
            logger.debug(f"CLAUDE_CLI_NAME is an absolute path: {cli_name}")
            return cli_name
        if _has_path_component(cli_name):
            raise ConfigurationError(
                f"Invalid CLAUDE_CLI_NAME: Relative paths are not allowed ({cli_name!r}). "
                "Use either a simple name (e.g., 'claude') or an absolute path "
                "(e.g., '/tmp/claude-test')"
            )

    name = cli_name or DEFAULT_CLI_NAME

    user_path = local_install_path(home)
    logger.debug(f"Checking for Claude CLI at local user path: {user_path}")
    if os.path.exists(user_path):
        logger.debug(f"Found Claude CLI at local user path: {user_path}")
        return user_path

    logger.warning(
        f"Claude CLI not found at {user_path}. Falling back to \"{name}\" in PATH. "
        "Ensure it is installed and accessible."
    )
    return name
