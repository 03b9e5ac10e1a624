"""Core data models for the KYC MCP server.

Shared data structures used by the protocol layer, the tool dispatcher and
the provider connectors.
"""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionType(str, Enum):
    """Type of tool execution - read operations vs write operations."""
    READ = "read"
    WRITE = "write"


class ToolDefinition(BaseModel):
    """
    Declarative definition of an MCP tool.

    The input schema is a JSON Schema object validated before the handler
    runs; handlers never see arguments that failed validation.
    """
    name: str = Field(..., description="Tool name as exposed to the agent")
    description: str = Field(..., description="Clear description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema for input validation"
    )
    execution_type: ExecutionType = Field(default=ExecutionType.READ)

    def to_mcp(self) -> dict[str, Any]:
        """Render in the shape returned by ``tools/list``."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolInvocation(BaseModel):
    """A single dispatched tool call. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None
    session_id: Optional[str] = None


class ToolResultStatus(str, Enum):
    """Status of tool execution."""
    SUCCESS = "success"
    ERROR = "error"


class TextContent(BaseModel):
    """A text content block of a tool result."""
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    """
    Envelope returned for every tool invocation that reached its handler.

    Handler failures are reported here with ``status=ERROR`` rather than
    as protocol errors, so the agent always gets an answerable response.
    """
    tool_name: str
    status: ToolResultStatus
    content: list[TextContent] = Field(default_factory=list)
    error: Optional[str] = None
    execution_time_ms: float = 0

    @property
    def is_error(self) -> bool:
        return self.status == ToolResultStatus.ERROR

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)

    def to_mcp(self) -> dict[str, Any]:
        """Render as an MCP ``CallToolResult``."""
        return {
            "content": [block.model_dump() for block in self.content],
            "isError": self.is_error,
        }


class AuditEntry(BaseModel):
    """
    Audit log entry for tool executions.

    Captures session, tool, arguments, timestamp, and result.
    """
    id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    session_id: Optional[str] = None
    correlation_id: Optional[str] = None
    tool_name: str
    execution_type: ExecutionType
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: ToolResultStatus
    error: Optional[str] = None
    execution_time_ms: float = 0


class Credential(BaseModel):
    """A bearer token issued by an identity provider."""
    token: str
    expires_at: float = Field(..., description="Expiry as a Unix timestamp")
    scope: str = ""

    def is_fresh(self, safety_margin: float, now: Optional[float] = None) -> bool:
        """True while the expiry is more than ``safety_margin`` seconds away."""
        now = time.time() if now is None else now
        return self.expires_at - now > safety_margin


class OperationState(str, Enum):
    """Lifecycle of a long-running external operation."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            OperationState.SUCCEEDED,
            OperationState.FAILED,
            OperationState.TIMED_OUT,
        )


# Forward-only ordering; terminal states share the highest rank
_OPERATION_RANK = {
    OperationState.QUEUED: 0,
    OperationState.RUNNING: 1,
    OperationState.SUCCEEDED: 2,
    OperationState.FAILED: 2,
    OperationState.TIMED_OUT: 2,
}


class OperationStatus(BaseModel):
    """One poll response from a long-running operation provider."""
    state: OperationState
    result: Optional[Any] = None
    error: Optional[Any] = None


class AsyncOperation(BaseModel):
    """Tracking record for a submitted long-running operation."""
    handle: str
    state: OperationState = OperationState.QUEUED
    attempts: int = 0
    result: Optional[Any] = None

    def advance(self, new_state: OperationState) -> bool:
        """
        Move to ``new_state`` if that is a forward transition.

        Returns:
            True if the state changed, False if the move was ignored
        """
        if self.state.is_terminal or new_state == self.state:
            return False
        if _OPERATION_RANK[new_state] < _OPERATION_RANK[self.state]:
            return False
        self.state = new_state
        return True
