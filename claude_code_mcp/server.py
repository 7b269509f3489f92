"""
MCP tool server over stdio.

The server:
1. Reads newline-delimited JSON-RPC requests from stdin
2. Dispatches each request as its own asyncio task to registered ToolHandlers
3. Writes JSON-RPC responses to stdout as the tasks complete

Several tools/call requests can be in flight at once; responses carry the
request id, so they are written in completion order rather than request order.

To serve a tool:

    from claude_code_mcp.server import StdioToolServer, ToolHandler

    class MyTool(ToolHandler):
        name = "my_tool"
        description = "Does something useful"
        parameters = {
            "input": {"type": "string", "description": "The input"},
        }
        required = ["input"]

        async def handle(self, arguments):
            return {"content": [{"type": "text", "text": arguments["input"]}]}

    server = StdioToolServer()
    server.register(MyTool())
    asyncio.run(server.run())
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import stat
import sys
from abc import ABC, abstractmethod
from typing import Any, Callable

from claude_code_mcp.constants import DEFAULT_PROTOCOL_VERSION, SERVER_NAME, SERVER_VERSION
from claude_code_mcp.errors import ErrorCode, McpError

logger = logging.getLogger(__name__)

# Prompts can be long; a single request line may be well beyond asyncio's 64 KiB default
_LINE_LIMIT = 16 * 1024 * 1024


def _is_pollable(stream) -> bool:
    """Whether the event loop can watch this stream: a pipe, a socket or a terminal."""
    try:
        fd = stream.fileno()
        mode = os.fstat(fd).st_mode
    except (OSError, ValueError):
        return False
    return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or os.isatty(fd)


class ThreadedLineReader:
    """
    Reads lines from a blocking binary stream in a worker thread.

    Used for stdin redirected from a regular file or /dev/null, which the
    event loop cannot poll. Mirrors StreamReader.readline: returns b"" at EOF
    and raises ValueError for a line over the limit, after discarding it.
    """

    def __init__(self, stream, limit: int = _LINE_LIMIT):
        self._stream = stream
        self._limit = limit

    async def readline(self) -> bytes:
        loop = asyncio.get_running_loop()
        line = await loop.run_in_executor(None, self._stream.readline, self._limit + 1)
        if len(line) <= self._limit:
            return line

        while line and not line.endswith(b"\n"):
            line = await loop.run_in_executor(None, self._stream.readline, self._limit)
        raise ValueError(f"Request line exceeds the limit of {self._limit} bytes")


class ToolHandler(ABC):
    """
    Base class for a tool implementation.

    Subclasses define what a tool does. The server handles transport.
    """

    # Subclasses must set these
    name: str = ""
    description: str = ""
    parameters: dict[str, dict] = {}
    required: list[str] = []

    @abstractmethod
    async def handle(self, arguments: Any) -> dict:
        """
        Execute the tool.

        Args:
            arguments: The "arguments" value of the tools/call request, unchecked

        Returns:
            An MCP tool result, e.g. {"content": [{"type": "text", "text": ...}]}

        Raises:
            McpError: to report a specific JSON-RPC error code
        """
        ...

    async def get_schema(self) -> dict:
        """Return the tool declaration for tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": self.parameters,
                "required": list(self.required),
            },
        }


def _write_stdout(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class StdioToolServer:
    """
    JSON-RPC tool server that communicates via stdin/stdout.

    Protocol:
    - One JSON-RPC message per line
    - Supports methods:
        - "initialize" → server info and capabilities
        - "ping"       → health check
        - "tools/list" → registered tool declarations
        - "tools/call" → calls a tool by name with arguments
    - Notifications (messages without an id) get no response
    """

    def __init__(
        self,
        name: str = SERVER_NAME,
        version: str = SERVER_VERSION,
        write: Callable[[str], None] = _write_stdout,
    ):
        self.name = name
        self.version = version
        self._write = write
        self._handlers: dict[str, ToolHandler] = {}
        self._tasks: set[asyncio.Task] = set()
        self._read_task: asyncio.Future | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def register(self, handler: ToolHandler) -> None:
        """Register a tool handler."""
        if not handler.name:
            raise ValueError(f"ToolHandler {handler.__class__.__name__} has no name")
        self._handlers[handler.name] = handler
        logger.info(f"Registered tool: {handler.name}")

    async def run(self) -> None:
        """Serve requests from this process's stdin until EOF or close()."""
        loop = asyncio.get_running_loop()
        if _is_pollable(sys.stdin):
            reader = asyncio.StreamReader(limit=_LINE_LIMIT)
            await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
            )
        else:
            logger.debug("stdin is not a pipe; reading it in a worker thread")
            reader = ThreadedLineReader(sys.stdin.buffer)
        await self.serve(reader)

    async def serve(self, reader: asyncio.StreamReader | ThreadedLineReader) -> None:
        """
        Main loop: read requests, dispatch each as a task, write responses.

        Returns once the input reaches EOF (after in-flight requests finish)
        or once close() is called (after in-flight requests are cancelled).
        """
        logger.info(f"Tool server starting with {len(self._handlers)} tools: "
                    f"{list(self._handlers.keys())}")

        while not self._closed:
            self._read_task = asyncio.ensure_future(reader.readline())
            try:
                raw = await self._read_task
            except asyncio.CancelledError:
                if self._closed:
                    break
                raise
            except ValueError as e:
                # Line longer than the reader limit; the reader has dropped it
                logger.error(f"Failed to read request: {e}")
                self._write_error(None, ErrorCode.PARSE_ERROR, f"Parse error: {e}")
                continue
            finally:
                self._read_task = None

            if not raw:
                break

            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue

            task = asyncio.create_task(self._handle_line(line))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            if self._closed:
                for task in list(self._tasks):
                    task.cancel()
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

        logger.info("Tool server stopped")

    def close(self) -> None:
        """Stop reading and cancel in-flight requests. Call from the event loop."""
        if self._closed:
            return
        self._closed = True
        logger.info("Closing tool server connection")
        if self._read_task is not None:
            self._read_task.cancel()
        for task in list(self._tasks):
            task.cancel()

    async def _handle_line(self, line: str) -> None:
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            self._write_error(None, ErrorCode.PARSE_ERROR, f"Parse error: {e}")
            return

        if not isinstance(request, dict) or not isinstance(request.get("method"), str):
            request_id = request.get("id") if isinstance(request, dict) else None
            self._write_error(request_id, ErrorCode.INVALID_REQUEST, "Invalid request")
            return

        method = request["method"]
        if "id" not in request:
            logger.debug(f"Received notification: {method}")
            return

        request_id = request["id"]
        params = request.get("params")
        if params is None:
            params = {}

        try:
            if not isinstance(params, dict):
                raise McpError(ErrorCode.INVALID_PARAMS, "params must be an object")
            result = await self._dispatch(method, params)
        except McpError as e:
            self._write_error(request_id, e.code, e.message)
        except asyncio.CancelledError:
            self._write_error(request_id, ErrorCode.INTERNAL_ERROR, "Server is shutting down")
            raise
        except Exception as e:
            logger.exception(f"Unhandled error in {method}")
            self._write_error(request_id, ErrorCode.INTERNAL_ERROR, str(e))
        else:
            self._write_result(request_id, result)

    async def _dispatch(self, method: str, params: dict) -> Any:
        """Route a method call to the appropriate handler."""

        if method == "initialize":
            return {
                "protocolVersion": params.get("protocolVersion") or DEFAULT_PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            }

        if method == "ping":
            return {}

        if method == "tools/list":
            return {"tools": [await h.get_schema() for h in self._handlers.values()]}

        if method == "tools/call":
            tool_name = params.get("name")
            handler = self._handlers.get(tool_name) if isinstance(tool_name, str) else None
            if not handler:
                raise McpError(ErrorCode.METHOD_NOT_FOUND, f"Tool {tool_name} not found")
            return await handler.handle(params.get("arguments"))

        raise McpError(ErrorCode.METHOD_NOT_FOUND, f"Unknown method: '{method}'")

    def _write_result(self, request_id: Any, result: Any) -> None:
        """Write a JSON-RPC success response."""
        self._write(json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "result": result,
        }))

    def _write_error(self, request_id: Any, code: int, message: str) -> None:
        """Write a JSON-RPC error response."""
        self._write(json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": int(code), "message": message},
        }))
