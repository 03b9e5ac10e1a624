"""MCP Server - sessions, tool registry, dispatch and authentication.

The MCP Server owns the protocol surface: it tracks client sessions,
validates and routes tool calls to their handlers, enforces the shared API
key, and audits every tool execution.
"""

from mcp_server.registry import ToolRegistry
from mcp_server.router import ToolDispatcher
from mcp_server.session import SessionRegistry
from mcp_server.auth import APIKeyAuth, AuthConfig
from mcp_server.audit import AuditLogger

__all__ = [
    "ToolRegistry",
    "ToolDispatcher",
    "SessionRegistry",
    "APIKeyAuth",
    "AuthConfig",
    "AuditLogger",
]
