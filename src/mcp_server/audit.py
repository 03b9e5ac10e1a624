"""Audit logging for the MCP server.

Logs all tool executions for compliance and debugging.
Captures: session, tool, arguments, timestamp, result.
"""

import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import (
    AuditEntry,
    ToolDefinition,
    ToolInvocation,
    ToolResult,
)

logger = get_logger(__name__)


class AuditLogger:
    """
    Audit logger for MCP tool executions.

    Every invocation that reached a handler is logged with:
    - Session and correlation id
    - Tool name and execution type
    - Arguments (with sensitive data redaction)
    - Timestamp
    - Result status and duration
    """

    SENSITIVE_PARAMS = {"password", "token", "secret", "api_key", "apikey", "credential"}

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

    def _redact_sensitive(self, params: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive arguments from audit logs."""
        redacted = {}
        for key, value in params.items():
            if key.lower() in self.SENSITIVE_PARAMS:
                redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def create_entry(
        self,
        tool: ToolDefinition,
        invocation: ToolInvocation,
        result: ToolResult
    ) -> AuditEntry:
        return AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.utcnow(),
            session_id=invocation.session_id,
            correlation_id=invocation.correlation_id,
            tool_name=tool.name,
            execution_type=tool.execution_type,
            arguments=self._redact_sensitive(dict(invocation.arguments)),
            status=result.status,
            error=result.error,
            execution_time_ms=result.execution_time_ms,
        )

    async def log(
        self,
        tool: ToolDefinition,
        invocation: ToolInvocation,
        result: ToolResult
    ) -> Optional[AuditEntry]:
        """Log a tool execution; returns the entry, or None when disabled."""
        if not self.enabled:
            return None

        entry = self.create_entry(tool, invocation, result)

        logger.info(
            "Tool executed",
            audit_id=entry.id,
            session_id=entry.session_id,
            tool=entry.tool_name,
            status=entry.status.value,
            execution_time_ms=round(entry.execution_time_ms, 2)
        )

        async with self._lock:
            self._buffer.append(entry)
            if len(self._buffer) >= self.buffer_size:
                await self._flush()

        return entry

    async def _flush(self) -> None:
        """Flush buffered entries to file."""
        if not self._buffer:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", error=str(e))
            # Keep entries for the next flush
            self._buffer[:0] = entries_to_write

    async def flush(self) -> None:
        """Public method to flush audit buffer."""
        async with self._lock:
            await self._flush()

    @property
    def pending(self) -> int:
        return len(self._buffer)
