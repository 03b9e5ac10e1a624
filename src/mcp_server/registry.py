"""Tool Registry for the MCP server.

Holds each tool's definition together with the coroutine that handles it.
Tools are registered at startup by the KYC tool modules.
"""

from typing import Any, Awaitable, Callable, NamedTuple

from shared.errors import UnknownTool, ValidationError
from shared.logging import get_logger
from shared.models import ToolDefinition, ToolInvocation
from shared.schema import check_arguments

logger = get_logger(__name__)


# Handlers receive validated arguments and the invocation they belong to
ToolHandler = Callable[[dict[str, Any], ToolInvocation], Awaitable[Any]]


class RegisteredTool(NamedTuple):
    definition: ToolDefinition
    handler: ToolHandler


class ToolRegistry:
    """
    Registry of tool name -> (definition, handler).

    Responsibilities:
    - Register tools
    - Lookup tools by name
    - Validate arguments against a tool's input schema
    - Describe tools for ``tools/list``
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, tool: ToolDefinition, handler: ToolHandler) -> None:
        """
        Register a tool and its handler.

        Raises:
            ValueError: If the tool name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = RegisteredTool(tool, handler)
        logger.info(
            "Tool registered",
            tool=tool.name,
            execution_type=tool.execution_type.value
        )

    def resolve(self, tool_name: str) -> RegisteredTool:
        """
        Get a registered tool or fail.

        Raises:
            UnknownTool: If no tool has this name
        """
        registered = self._tools.get(tool_name)
        if registered is None:
            raise UnknownTool(tool_name)
        return registered

    def list_tools(self) -> list[ToolDefinition]:
        """All tool definitions in registration order."""
        return [registered.definition for registered in self._tools.values()]

    def validate_input(self, tool_name: str, arguments: dict[str, Any]) -> None:
        """
        Validate arguments against the tool's input schema.

        Raises:
            UnknownTool: If no tool has this name
            ValidationError: Listing the offending fields on mismatch
        """
        definition = self.resolve(tool_name).definition
        is_valid, fields, errors = check_arguments(arguments, definition.input_schema)
        if not is_valid:
            raise ValidationError(tool_name, fields, errors)

    def describe(self) -> list[dict[str, Any]]:
        """Tool definitions in the shape returned by ``tools/list``."""
        return [tool.to_mcp() for tool in self.list_tools()]

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
