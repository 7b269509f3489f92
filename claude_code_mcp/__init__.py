"""
Claude Code MCP: expose the Claude CLI as a single MCP tool over stdio.

Architecture:
    ┌──────────────┐     stdio      ┌──────────────┐   argv    ┌────────────┐
    │ Orchestrator │ ──────────── │    Bridge     │ ───────── │ Claude CLI │
    │  (MCP client)│  JSON-RPC    │ (this server) │ subprocess│  (-p ...)  │
    └──────────────┘     pipes     └──────────────┘           └────────────┘

The StdioToolServer handles the transport. ClaudeCodeTool validates each
tools/call, picks a working directory, runs the CLI with a deadline and maps
the outcome to a tool result or a JSON-RPC error.

On the client side, BridgeClient launches the bridge as a subprocess and
claude_code_langchain_tool wraps it for LangChain agents.
"""

from claude_code_mcp.constants import SERVER_VERSION
from claude_code_mcp.client import BridgeClient
from claude_code_mcp.config import BridgeConfig
from claude_code_mcp.server import StdioToolServer, ToolHandler
from claude_code_mcp.tool import ClaudeCodeTool

__version__ = SERVER_VERSION


# Bridge requires langchain, lazy import to keep the server standalone
def claude_code_langchain_tool(*args, **kwargs):
    from claude_code_mcp.bridge import claude_code_langchain_tool as _impl
    return _impl(*args, **kwargs)


__all__ = [
    "BridgeClient",
    "BridgeConfig",
    "ClaudeCodeTool",
    "StdioToolServer",
    "ToolHandler",
    "claude_code_langchain_tool",
]
