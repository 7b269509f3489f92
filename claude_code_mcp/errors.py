"""
Error taxonomy for the bridge.

Three layers raise errors:

- the CLI resolver raises ConfigurationError for an unusable override
- the process invoker raises ExecutionError tagged with a FailureKind
- the protocol layer raises McpError carrying a JSON-RPC error code

The client side raises BridgeCallError when the server answers with an error.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ConfigurationError(ValueError):
    """The bridge configuration cannot be used as given."""


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    NON_ZERO_EXIT = "non_zero_exit"
    SPAWN_ERROR = "spawn_error"


class ExecutionError(RuntimeError):
    """
    A subprocess run that did not finish with exit code 0.

    Carries whatever stdout/stderr was captured before the failure.
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind,
        command: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code

    @property
    def is_timeout(self) -> bool:
        return self.kind is FailureKind.TIMEOUT


class ErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes used by the server."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class McpError(Exception):
    """An error that the server reports to the caller with a specific code."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": int(self.code), "message": self.message}


class BridgeCallError(RuntimeError):
    """An error response received from a bridge server."""

    def __init__(self, code: int | None, message: str):
        super().__init__(f"[{code}] {message}" if code is not None else message)
        self.code = code
        self.message = message

    @classmethod
    def from_response_error(cls, error: dict) -> "BridgeCallError":
        return cls(error.get("code"), error.get("message", "Unknown error"))
