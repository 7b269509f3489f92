"""
Bridge between a running Claude Code MCP bridge and LangChain.

This module converts the bridge's claude_code tool into a LangChain tool
that an orchestrating LangChain agent can delegate tasks to.

Usage:
    from claude_code_mcp.bridge import claude_code_langchain_tool

    with BridgeClient() as client:
        lc_tool = claude_code_langchain_tool(client)
        agent = create_agent(model, tools=[lc_tool])
"""

from __future__ import annotations

from langchain_core.tools import StructuredTool

from claude_code_mcp.client import BridgeClient
from claude_code_mcp.constants import TOOL_NAME


def claude_code_langchain_tool(
    client: BridgeClient,
    description_override: str | None = None,
) -> StructuredTool:
    """
    Create a LangChain StructuredTool that wraps the bridge's claude_code tool.

    The returned tool, when invoked by an agent, sends a tools/call request to
    the bridge via stdio and returns the CLI's output text.

    Args:
        client: A started BridgeClient
        description_override: Optional override for the tool description

    Returns:
        A LangChain StructuredTool that proxies calls to the bridge.
    """
    tool_schema = next((t for t in client.list_tools() if t["name"] == TOOL_NAME), None)

    if tool_schema:
        description = description_override or tool_schema.get("description", TOOL_NAME)
    else:
        description = description_override or f"MCP tool: {TOOL_NAME}"

    def claude_code(prompt: str, workFolder: str | None = None) -> str:
        """Proxy call to the Claude Code MCP bridge."""
        try:
            return client.call(prompt, work_folder=workFolder)
        except Exception as e:
            return f"Error calling {TOOL_NAME}: {e}"

    return StructuredTool.from_function(
        func=claude_code,
        name=TOOL_NAME,
        description=description,
    )
