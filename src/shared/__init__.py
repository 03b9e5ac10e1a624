"""Shared models, configuration, errors and logging for the KYC MCP server."""

from shared.models import (
    Credential,
    ToolDefinition,
    ToolInvocation,
    ToolResult,
    ToolResultStatus,
    AuditEntry,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "Credential",
    "ToolDefinition",
    "ToolInvocation",
    "ToolResult",
    "ToolResultStatus",
    "AuditEntry",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
