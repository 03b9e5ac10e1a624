"""Tests for MCP Server components."""

import asyncio

import pytest
from fastapi import HTTPException

from shared.errors import InvalidSession, UnknownTool, ValidationError
from shared.models import (
    ExecutionType,
    ToolDefinition,
    ToolInvocation,
    ToolResult,
    ToolResultStatus,
)


LOOKUP_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "count": {"type": "integer"}
    },
    "required": ["name"]
}


async def echo_handler(arguments, invocation):
    return {"echo": arguments}


async def failing_handler(arguments, invocation):
    raise RuntimeError("record store unreachable")


class TestToolRegistry:
    """Tests for the ToolRegistry."""

    def test_register_tool(self):
        """Test registering a tool."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        tool = ToolDefinition(name="lookup", description="A test tool")

        registry.register(tool, echo_handler)

        assert registry.resolve("lookup").definition is tool
        assert "lookup" in registry
        assert len(registry) == 1

    def test_register_duplicate_tool_raises(self):
        """Test that registering duplicate tool raises error."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        tool = ToolDefinition(name="lookup", description="A test tool")

        registry.register(tool, echo_handler)

        with pytest.raises(ValueError, match="already registered"):
            registry.register(tool, echo_handler)

    def test_describe_uses_mcp_shape(self):
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.register(
            ToolDefinition(name="lookup", description="Find", input_schema=LOOKUP_SCHEMA),
            echo_handler
        )

        described = registry.describe()

        assert described == [{
            "name": "lookup",
            "description": "Find",
            "inputSchema": LOOKUP_SCHEMA,
        }]

    def test_resolve_unknown_tool(self):
        from mcp_server.registry import ToolRegistry

        with pytest.raises(UnknownTool) as exc_info:
            ToolRegistry().resolve("missing")

        assert exc_info.value.tool_name == "missing"

    def test_validate_input(self):
        """Test input validation against schema."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.register(
            ToolDefinition(name="lookup", description="Test", input_schema=LOOKUP_SCHEMA),
            echo_handler
        )

        # Valid input
        registry.validate_input("lookup", {"name": "test", "count": 5})

        # Missing required field
        with pytest.raises(ValidationError) as exc_info:
            registry.validate_input("lookup", {"count": 5})
        assert exc_info.value.fields == ["name"]

        # Wrong type
        with pytest.raises(ValidationError) as exc_info:
            registry.validate_input("lookup", {"name": "test", "count": "five"})
        assert exc_info.value.fields == ["count"]


class TestSchemaValidation:
    """Tests for argument checking."""

    def test_reports_every_missing_field(self):
        from shared.schema import check_arguments

        schema = {
            "type": "object",
            "properties": {"a": {"type": "string"}, "b": {"type": "string"}},
            "required": ["a", "b"]
        }

        is_valid, fields, messages = check_arguments({}, schema)

        assert not is_valid
        assert fields == ["a", "b"]
        assert messages

    def test_enum_violation_names_field(self):
        from shared.schema import check_arguments

        schema = {
            "type": "object",
            "properties": {"status": {"type": "integer", "enum": [1, 2, 3, 4]}},
        }

        is_valid, fields, _ = check_arguments({"status": 9}, schema)

        assert not is_valid
        assert fields == ["status"]

    def test_empty_schema_accepts_anything(self):
        from shared.schema import check_arguments

        assert check_arguments({"anything": 1}, {}) == (True, [], [])


class TestToolDispatcher:
    """Tests for tool dispatch."""

    def _dispatcher(self, handler=echo_handler, audit_logger=None):
        from mcp_server.registry import ToolRegistry
        from mcp_server.router import ToolDispatcher

        registry = ToolRegistry()
        registry.register(
            ToolDefinition(name="lookup", description="Test", input_schema=LOOKUP_SCHEMA),
            handler
        )
        return ToolDispatcher(registry, audit_logger)

    @pytest.mark.asyncio
    async def test_successful_invocation(self):
        dispatcher = self._dispatcher()

        result = await dispatcher.invoke("lookup", {"name": "acme"})

        assert result.status == ToolResultStatus.SUCCESS
        assert not result.is_error
        assert '"name": "acme"' in result.text
        assert result.execution_time_ms >= 0

    @pytest.mark.asyncio
    async def test_handler_failure_becomes_error_envelope(self):
        dispatcher = self._dispatcher(handler=failing_handler)

        result = await dispatcher.invoke("lookup", {"name": "acme"})

        assert result.is_error
        assert result.error == "record store unreachable"
        assert result.text == "Error: record store unreachable"
        assert result.to_mcp()["isError"] is True

    @pytest.mark.asyncio
    async def test_invalid_arguments_never_reach_handler(self):
        calls = []

        async def recording_handler(arguments, invocation):
            calls.append(arguments)
            return "ok"

        dispatcher = self._dispatcher(handler=recording_handler)

        with pytest.raises(ValidationError):
            await dispatcher.invoke("lookup", {})

        assert calls == []

    @pytest.mark.asyncio
    async def test_unknown_tool_raises(self):
        dispatcher = self._dispatcher()

        with pytest.raises(UnknownTool):
            await dispatcher.invoke("nope", {})

    @pytest.mark.asyncio
    async def test_execution_is_audited(self, tmp_path):
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(log_path=str(tmp_path / "audit.log"), enabled=True)
        dispatcher = self._dispatcher(handler=failing_handler, audit_logger=audit)

        await dispatcher.invoke("lookup", {"name": "acme"}, session_id="s-1")

        assert audit.pending == 1

    def test_render_payload(self):
        from mcp_server.router import render_payload

        assert render_payload("plain text") == "plain text"
        assert render_payload({"a": 1}) == '{\n  "a": 1\n}'
        assert render_payload([]) == "[]"


class TestAPIKeyAuth:
    """Tests for shared secret authentication."""

    def test_matching_key_accepted(self):
        from mcp_server.auth import APIKeyAuth, AuthConfig

        auth = APIKeyAuth(AuthConfig(api_key="abc123"))

        auth.verify("abc123")

    def test_wrong_key_forbidden(self):
        from mcp_server.auth import APIKeyAuth, AuthConfig

        auth = APIKeyAuth(AuthConfig(api_key="abc123"))

        with pytest.raises(HTTPException) as exc_info:
            auth.verify("xyz")
        assert exc_info.value.status_code == 403

    def test_missing_key_unauthorized(self):
        from mcp_server.auth import APIKeyAuth, AuthConfig

        auth = APIKeyAuth(AuthConfig(api_key="abc123"))

        with pytest.raises(HTTPException) as exc_info:
            auth.verify(None)
        assert exc_info.value.status_code == 401

    def test_insecure_mode_accepts_everything(self):
        from mcp_server.auth import APIKeyAuth, AuthConfig

        auth = APIKeyAuth(AuthConfig())

        assert not auth.config.require_auth
        auth.verify(None)
        auth.verify("anything")


class TestAuditLogger:
    """Tests for audit logging."""

    def _call(self, arguments, status=ToolResultStatus.SUCCESS):
        tool = ToolDefinition(
            name="update_customer_status",
            description="Test",
            execution_type=ExecutionType.WRITE
        )
        invocation = ToolInvocation(
            tool_name=tool.name,
            arguments=arguments,
            session_id="session-1"
        )
        result = ToolResult(tool_name=tool.name, status=status, execution_time_ms=12.5)
        return tool, invocation, result

    @pytest.mark.asyncio
    async def test_audit_entry_creation(self, tmp_path):
        """Test creating audit entries."""
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(log_path=str(tmp_path / "audit.log"), enabled=True)

        entry = await audit.log(*self._call({"customerId": "c-1", "status": 3}))

        assert entry.session_id == "session-1"
        assert entry.tool_name == "update_customer_status"
        assert entry.execution_type == ExecutionType.WRITE
        assert entry.arguments == {"customerId": "c-1", "status": 3}

    @pytest.mark.asyncio
    async def test_sensitive_data_redaction(self, tmp_path):
        """Test that sensitive data is redacted."""
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(log_path=str(tmp_path / "audit.log"))

        entry = await audit.log(*self._call({
            "name": "acme",
            "api_key": "secret",
            "nested": {"password": "hunter2"}
        }))

        assert entry.arguments["name"] == "acme"
        assert entry.arguments["api_key"] == "[REDACTED]"
        assert entry.arguments["nested"]["password"] == "[REDACTED]"

    @pytest.mark.asyncio
    async def test_disabled_logger_records_nothing(self, tmp_path):
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(log_path=str(tmp_path / "audit.log"), enabled=False)

        assert await audit.log(*self._call({})) is None
        assert audit.pending == 0

    @pytest.mark.asyncio
    async def test_flush_writes_json_lines(self, tmp_path):
        from mcp_server.audit import AuditLogger

        log_path = tmp_path / "nested" / "audit.log"
        audit = AuditLogger(log_path=str(log_path), buffer_size=100)

        await audit.log(*self._call({"customerId": "c-1"}))
        await audit.log(*self._call({"customerId": "c-2"}, ToolResultStatus.ERROR))
        await audit.flush()

        lines = log_path.read_text().splitlines()
        assert len(lines) == 2
        assert '"c-2"' in lines[1]
        assert audit.pending == 0


class TestSessionRegistry:
    """Tests for session lifecycle."""

    @pytest.mark.asyncio
    async def test_create_and_lookup(self):
        from mcp_server.session import SessionRegistry, SessionState

        sessions = SessionRegistry()
        session = await sessions.create()

        assert session.state == SessionState.INITIALIZING
        assert sessions.lookup(session.id) is session
        assert session.id in sessions

    @pytest.mark.asyncio
    async def test_ids_are_unique(self):
        from mcp_server.session import SessionRegistry

        sessions = SessionRegistry()
        created = await asyncio.gather(*(sessions.create() for _ in range(20)))

        assert len({s.id for s in created}) == 20
        assert len(sessions) == 20

    @pytest.mark.asyncio
    async def test_unknown_id_rejected(self):
        from mcp_server.session import SessionRegistry

        sessions = SessionRegistry()

        with pytest.raises(InvalidSession):
            sessions.lookup("does-not-exist")
        with pytest.raises(InvalidSession):
            sessions.lookup(None)

    @pytest.mark.asyncio
    async def test_closed_id_is_never_reused(self):
        from mcp_server.session import SessionRegistry, SessionState

        sessions = SessionRegistry()
        session = await sessions.create()
        session.activate()

        closed = await sessions.remove(session.id)

        assert closed.state == SessionState.CLOSED
        assert closed.channel.closed
        with pytest.raises(InvalidSession):
            sessions.lookup(session.id)
        with pytest.raises(InvalidSession):
            await sessions.remove(session.id)

    @pytest.mark.asyncio
    async def test_close_all(self):
        from mcp_server.session import SessionRegistry

        sessions = SessionRegistry()
        first = await sessions.create()
        second = await sessions.create()

        await sessions.close_all()

        assert len(sessions) == 0
        assert not first.is_open
        assert not second.is_open

    @pytest.mark.asyncio
    async def test_close_all_races_with_delete(self):
        from mcp_server.session import SessionRegistry

        sessions = SessionRegistry()
        first = await sessions.create()
        second = await sessions.create()

        # queue a delete and a shutdown behind the registry lock
        async with sessions._lock:
            deleting = asyncio.create_task(sessions.remove(first.id))
            closing = asyncio.create_task(sessions.close_all())
            await asyncio.sleep(0)

        assert await deleting is first
        await closing

        assert len(sessions) == 0
        assert not second.is_open

    @pytest.mark.asyncio
    async def test_stream_ends_when_channel_closes(self):
        from mcp_server.session import SessionChannel

        channel = SessionChannel()
        channel.send({"jsonrpc": "2.0", "method": "notifications/message"})
        channel.close()
        channel.send({"dropped": True})

        received = [message async for message in channel.stream()]

        assert received == [{"jsonrpc": "2.0", "method": "notifications/message"}]


class TestLogging:
    """Tests for the structlog setup."""

    def test_secrets_masked(self):
        from shared.logging import mask_secrets

        event = mask_secrets(None, "info", {
            "event": "Acquiring access token",
            "client_secret": "s3cret",
            "scope": "https://org.crm.dynamics.com/.default",
        })

        assert event["client_secret"] == "***"
        assert event["scope"] == "https://org.crm.dynamics.com/.default"

    def test_request_context_is_bound_and_cleared(self):
        import structlog

        from shared.logging import bind_request_context, clear_request_context

        bind_request_context(session_id="s-1", request_id=4)
        assert structlog.contextvars.get_contextvars() == {"session_id": "s-1", "request_id": 4}

        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}
