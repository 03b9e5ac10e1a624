"""Tool Dispatcher for the MCP server.

Routes a named invocation to its handler. Routing and validation failures
are raised as protocol errors; anything a handler raises is converted into
an error envelope so the agent always receives an answerable result.
"""

import json
import time
from typing import Any, Optional

from pydantic import BaseModel

from shared.logging import get_logger
from shared.models import (
    TextContent,
    ToolInvocation,
    ToolResult,
    ToolResultStatus,
)
from mcp_server.audit import AuditLogger
from mcp_server.registry import ToolRegistry

logger = get_logger(__name__)


def render_payload(payload: Any) -> str:
    """Render a handler's return value as the text of a content block."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True, indent=2)
    if isinstance(payload, list) and payload and all(isinstance(p, BaseModel) for p in payload):
        payload = [p.model_dump(mode="json", by_alias=True) for p in payload]
    return json.dumps(payload, indent=2, default=str)


class ToolDispatcher:
    """
    Validates and executes tool invocations.

    Responsibilities:
    - Reject unknown tools and invalid arguments
    - Run the handler
    - Convert handler failures into error envelopes
    - Audit every execution that reached a handler
    """

    def __init__(
        self,
        registry: ToolRegistry,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry
        self.audit_logger = audit_logger

    async def invoke(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> ToolResult:
        """
        Invoke a tool by name.

        Raises:
            UnknownTool: If the tool is not registered
            ValidationError: If the arguments do not match the input schema

        Returns:
            The tool result envelope (``status=ERROR`` if the handler failed)
        """
        arguments = arguments if arguments is not None else {}
        self.registry.validate_input(name, arguments)

        invocation = ToolInvocation(
            tool_name=name,
            arguments=arguments,
            correlation_id=correlation_id,
            session_id=session_id,
        )
        return await self.execute(invocation)

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        """Run the handler of an already validated invocation."""
        registered = self.registry.resolve(invocation.tool_name)
        start_time = time.time()

        logger.debug(
            "Executing tool",
            tool=invocation.tool_name,
            correlation_id=invocation.correlation_id
        )

        try:
            payload = await registered.handler(dict(invocation.arguments), invocation)
            result = ToolResult(
                tool_name=invocation.tool_name,
                status=ToolResultStatus.SUCCESS,
                content=[TextContent(text=render_payload(payload))],
            )
        except Exception as e:
            logger.error(
                "Tool execution failed",
                tool=invocation.tool_name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )
            result = ToolResult(
                tool_name=invocation.tool_name,
                status=ToolResultStatus.ERROR,
                content=[TextContent(text=f"Error: {e}")],
                error=str(e),
            )

        result.execution_time_ms = (time.time() - start_time) * 1000

        if self.audit_logger is not None:
            await self.audit_logger.log(registered.definition, invocation, result)

        return result
