"""Error taxonomy for the KYC MCP server.

Protocol-level errors (validation, routing, session lifecycle) carry a
JSON-RPC error code and are rendered at the transport boundary. Everything
raised inside a tool handler is turned into an error envelope by the
dispatcher instead.
"""

from typing import Any, Optional


# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000


class KycServerError(Exception):
    """Base exception for all server errors."""
    pass


class ProtocolError(KycServerError):
    """A request violated the MCP/JSON-RPC protocol."""

    code: int = INVALID_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.data = data

    def to_error(self) -> dict[str, Any]:
        """Render as a JSON-RPC error object."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class InvalidSession(ProtocolError):
    """Session id is unknown, retired, or missing where one is required."""

    code = SERVER_ERROR


class UnknownTool(ProtocolError):
    """No tool is registered under the requested name."""

    code = INVALID_PARAMS

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}", data={"tool": tool_name})
        self.tool_name = tool_name


class ValidationError(ProtocolError):
    """Tool arguments do not match the tool's input schema."""

    code = INVALID_PARAMS

    def __init__(self, tool_name: str, fields: list[str], errors: list[str]) -> None:
        super().__init__(
            f"Invalid arguments for tool '{tool_name}': {'; '.join(errors)}",
            data={"tool": tool_name, "fields": fields, "errors": errors},
        )
        self.tool_name = tool_name
        self.fields = fields
        self.errors = errors


class ProviderNotConfigured(KycServerError):
    """A tool needs an external provider that has no configuration."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} not configured")
        self.provider = provider


class CredentialError(KycServerError):
    """Token exchange with the identity provider failed."""
    pass


class OperationError(KycServerError):
    """A long-running external operation failed."""

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.detail = detail


class OperationTimeoutError(OperationError, TimeoutError):
    """A long-running external operation did not finish within its budget."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class UpstreamError(KycServerError):
    """An external provider returned a non-success response."""

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        super().__init__(f"{provider} API error {status_code}: {body}")
        self.provider = provider
        self.status_code = status_code
        self.body = body
