"""
Client-side stdio transport for talking to an MCP server subprocess.

The server runs as a child process. We write JSON-RPC messages to its stdin
and read responses from its stdout. One line = one message.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request. A request without an id is a notification."""
    method: str
    params: dict[str, Any]
    id: int | str | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_json(self) -> str:
        message: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": self.method,
            "params": self.params,
        }
        if not self.is_notification:
            message["id"] = self.id
        return json.dumps(message)


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: int | str | None
    result: Any = None
    error: dict | None = None

    @classmethod
    def from_json(cls, data: str) -> "JsonRpcResponse":
        parsed = json.loads(data)
        return cls(
            id=parsed.get("id"),
            result=parsed.get("result"),
            error=parsed.get("error"),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None


class StdioTransport:
    """JSON-RPC over stdin/stdout pipes to a subprocess."""

    def __init__(
        self,
        command: list[str],
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ):
        """
        Args:
            command: Command to launch the server process.
                     e.g., ["python", "-m", "claude_code_mcp"]
            env: Optional environment variables for the subprocess.
            cwd: Optional working directory for the subprocess.
        """
        self.command = command
        self.env = env
        self.cwd = cwd
        self._process: subprocess.Popen | None = None
        self._request_id = 0

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def start(self) -> None:
        """Launch the server subprocess."""
        if self._process and self._process.poll() is None:
            logger.warning("Transport already running, stopping first")
            self.stop()

        logger.info(f"Starting stdio transport: {' '.join(self.command)}")
        self._process = subprocess.Popen(
            self.command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            env=self.env,
            cwd=self.cwd,
            bufsize=1,  # Line-buffered
        )

    def stop(self) -> None:
        """Terminate the server subprocess."""
        if self._process:
            if self._process.stdin:
                try:
                    self._process.stdin.close()
                except OSError:
                    pass
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
            self._process = None
            logger.info("Stdio transport stopped")

    def is_alive(self) -> bool:
        """Check if the subprocess is running."""
        return self._process is not None and self._process.poll() is None

    def notify(self, request: JsonRpcRequest) -> None:
        """Send a notification; no response is expected."""
        self._write(request)

    def send(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Send a JSON-RPC request via stdin and read its response from stdout."""
        self._write(request)

        while True:
            response_line = self._process.stdout.readline()
            if not response_line:
                code = self._process.poll()
                raise RuntimeError(f"Server process closed its output (exit code: {code})")

            response_line = response_line.strip()
            if not response_line:
                continue

            response = JsonRpcResponse.from_json(response_line)
            if response.id == request.id:
                return response
            logger.debug(f"Skipping response for another request: {response.id}")

    def next_id(self) -> int:
        """Generate the next request ID."""
        self._request_id += 1
        return self._request_id

    def _write(self, request: JsonRpcRequest) -> None:
        if not self.is_alive():
            raise RuntimeError("Transport not running. Call start() first.")
        self._process.stdin.write(request.to_json() + "\n")
        self._process.stdin.flush()
