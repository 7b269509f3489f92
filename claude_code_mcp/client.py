"""
Bridge client: launches a Claude Code MCP bridge and calls its tool.

Usage:
    client = BridgeClient(env={"CLAUDE_CLI_TIMEOUT_SECONDS": "600"})

    # Start it (launch, initialize handshake, tool discovery)
    client.start()

    # Delegate a task
    text = client.call("List the files in this folder", work_folder="/path/to/project")

    # Get a LangChain tool for an orchestrating agent
    lc_tool = claude_code_langchain_tool(client)

    client.stop()
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

from claude_code_mcp.constants import DEFAULT_PROTOCOL_VERSION, TOOL_NAME
from claude_code_mcp.errors import BridgeCallError
from claude_code_mcp.transport import JsonRpcRequest, StdioTransport

logger = logging.getLogger(__name__)


def default_command() -> list[str]:
    return [sys.executable, "-m", "claude_code_mcp"]


class BridgeClient:
    """
    Manages the lifecycle of one bridge server process.

    Responsibilities:
    - Launch the bridge as a subprocess (stdio transport)
    - Perform the MCP initialize handshake and discover tools
    - Call the claude_code tool and return its text
    - Graceful shutdown
    """

    def __init__(
        self,
        command: list[str] | None = None,
        env: dict[str, str] | None = None,
        inherit_env: bool = True,
        client_name: str = "claude-code-mcp-client",
    ):
        """
        Args:
            command: Command to launch the bridge (default: this interpreter, -m claude_code_mcp)
            env: Environment variables for the bridge process
            inherit_env: Start from this process's environment before applying env
            client_name: Name sent in the initialize handshake
        """
        self.command = command or default_command()
        if inherit_env:
            self.env = {**os.environ, **(env or {})}
        else:
            self.env = dict(env or {})
        self.client_name = client_name
        self.server_info: dict = {}
        self._transport: StdioTransport | None = None
        self._tools: list[dict] = []

    def __enter__(self) -> "BridgeClient":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def start(self) -> list[dict]:
        """
        Start the bridge and discover its tools.

        Returns:
            List of tool declarations from the server.
        """
        transport = StdioTransport(self.command, self.env)
        transport.start()
        self._transport = transport

        try:
            init = self._request("initialize", {
                "protocolVersion": DEFAULT_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": self.client_name, "version": "1.0.0"},
            })
            self.server_info = init.get("serverInfo", {})
            transport.notify(JsonRpcRequest(method="notifications/initialized", params={}))
            self._tools = self._request("tools/list", {}).get("tools", [])
        except Exception:
            self.stop()
            raise

        tool_names = [t["name"] for t in self._tools]
        logger.info(f"Started bridge {self.server_info}: tools={tool_names}")
        return self._tools

    def stop(self) -> None:
        """Stop the bridge process."""
        if self._transport:
            self._transport.stop()
            self._transport = None
            logger.info("Stopped bridge")

    def is_running(self) -> bool:
        return self._transport is not None and self._transport.is_alive()

    def list_tools(self, refresh: bool = False) -> list[dict]:
        """Tool declarations, re-fetched from the server when refresh is set."""
        if refresh:
            self._tools = self._request("tools/list", {}).get("tools", [])
        return self._tools

    def ping(self) -> dict:
        return self._request("ping", {})

    def call_tool(self, tool_name: str, arguments: Any) -> dict:
        """
        Call a tool by name.

        Returns:
            The raw MCP tool result.

        Raises:
            BridgeCallError: the server answered with an error
        """
        return self._request("tools/call", {"name": tool_name, "arguments": arguments})

    def call(self, prompt: str, work_folder: str | None = None) -> str:
        """Run the claude_code tool and return its text output."""
        arguments: dict[str, Any] = {"prompt": prompt}
        if work_folder:
            arguments["workFolder"] = work_folder
        result = self.call_tool(TOOL_NAME, arguments)
        return "".join(
            block.get("text", "")
            for block in result.get("content", [])
            if block.get("type") == "text"
        )

    def _request(self, method: str, params: dict[str, Any]) -> Any:
        transport = self._transport
        if not transport or not transport.is_alive():
            raise RuntimeError("Bridge is not running. Call start() first.")

        request = JsonRpcRequest(method=method, params=params, id=transport.next_id())
        response = transport.send(request)

        if response.is_error:
            raise BridgeCallError.from_response_error(response.error)
        return response.result
