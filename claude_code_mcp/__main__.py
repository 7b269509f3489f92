"""
Run the Claude Code MCP bridge on stdio.

Usage:
    python -m claude_code_mcp
    claude-code-mcp --verbose

Configuration comes from the environment (see claude_code_mcp.config).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from claude_code_mcp.config import BridgeConfig, configure_logging
from claude_code_mcp.constants import SERVER_VERSION
from claude_code_mcp.server import StdioToolServer
from claude_code_mcp.tool import ClaudeCodeTool

logger = logging.getLogger("claude_code_mcp")


def build_server(config: BridgeConfig) -> StdioToolServer:
    """Create the server with the claude_code tool registered."""
    server = StdioToolServer()
    server.register(ClaudeCodeTool(config))
    return server


async def serve(config: BridgeConfig) -> None:
    server = build_server(config)
    interrupted = asyncio.Event()

    def _on_interrupt() -> None:
        logger.info("Claude Code MCP server shutting down...")
        interrupted.set()
        server.close()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    except NotImplementedError:
        # Windows event loops have no signal handler support; KeyboardInterrupt applies
        pass

    logger.info(f"Claude Code MCP server running on stdio (v{SERVER_VERSION})")
    await server.run()

    if interrupted.is_set() and config.test_mode:
        logger.info("Test mode: keeping process alive after interrupt")
        await asyncio.Event().wait()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="claude-code-mcp",
        description="Expose the Claude CLI as an MCP tool over stdio.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    args = parser.parse_args(argv)

    # Logging first, so configuration warnings use the configured handler
    configure_logging(debug=args.verbose)
    config = BridgeConfig.from_env()
    configure_logging(debug=args.verbose or config.debug)

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
