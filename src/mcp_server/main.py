"""KYC MCP Server - FastAPI Application.

Serves the MCP streamable HTTP transport on ``/mcp``:

- POST   with no session id and an ``initialize`` request mints a session
- POST   with a known session id carries any other JSON-RPC message
- GET    with a known session id streams server-to-client messages
- DELETE with a known session id terminates the session
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from shared.config import Settings, get_settings
from shared.errors import (
    INTERNAL_ERROR,
    PARSE_ERROR,
    InvalidSession,
    ProtocolError,
)
from shared.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from mcp_server.audit import AuditLogger
from mcp_server.auth import APIKeyAuth, AuthConfig
from mcp_server.protocol import (
    JsonRpcRequest,
    ProtocolHandler,
    error_response,
    is_initialize_request,
)
from mcp_server.registry import ToolRegistry
from mcp_server.router import ToolDispatcher
from mcp_server.session import Session, SessionRegistry, SessionState

from kyc import records, register_kyc_tools
from kyc.guidelines import KYC_GUIDELINES
from kyc.services import KycServices

logger = get_logger(__name__)

SESSION_HEADER = "mcp-session-id"
SERVER_NAME = "KYC MCP Server"
SERVER_VERSION = "1.0.0"


def _protocol_error(
    error: ProtocolError,
    request_id: Any = None,
    status_code: int = status.HTTP_400_BAD_REQUEST
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_response(request_id, error))


async def require_api_key(request: Request) -> None:
    """Dependency enforcing the shared secret configured for this app."""
    auth: APIKeyAuth = request.app.state.auth
    await auth(request)


router = APIRouter()


@router.get("/", tags=["System"])
async def server_info(request: Request):
    registry: ToolRegistry = request.app.state.tool_registry
    return {
        "name": SERVER_NAME,
        "version": SERVER_VERSION,
        "description": "MCP Server for KYC document evaluation and legal entity due diligence",
        "endpoints": {
            "mcp": "/mcp (Streamable HTTP)",
            "health": "/health",
            "testRecordStore": "/test-record-store",
        },
        "tools": [f"{tool.name} - {tool.description}" for tool in registry.list_tools()],
    }


@router.get("/health", tags=["System"])
async def health_check(request: Request):
    settings: Settings = request.app.state.settings
    services: KycServices = request.app.state.services
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "secured": settings.secured,
        "sessions": len(request.app.state.sessions),
        **services.status(),
    }


@router.get("/test-record-store", tags=["System"], dependencies=[Depends(require_api_key)])
async def test_record_store(request: Request):
    """Probe connectivity to the record store with a one-row query."""
    services: KycServices = request.app.state.services
    start = datetime.utcnow()
    try:
        await services.require_records().list_records(records.CUSTOMERS, top=1)
    except Exception as e:
        logger.error("Record store connectivity check failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "message": "Failed to connect to the record store",
                "error": str(e),
            },
        )

    duration_ms = (datetime.utcnow() - start).total_seconds() * 1000
    return {
        "success": True,
        "message": "Successfully connected to the record store",
        "duration": f"{duration_ms:.0f}ms",
    }


@router.post("/mcp", tags=["MCP"], dependencies=[Depends(require_api_key)])
async def mcp_post(request: Request):
    sessions: SessionRegistry = request.app.state.sessions
    session_id = request.headers.get(SESSION_HEADER)

    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _protocol_error(ProtocolError("Parse error", code=PARSE_ERROR))

    request_id = body.get("id") if isinstance(body, dict) else None
    bind_request_context(session_id=session_id or "new", request_id=request_id)
    logger.info(
        "POST /mcp",
        method=body.get("method", "unknown") if isinstance(body, dict) else "batch"
    )

    try:
        if session_id:
            try:
                session = sessions.lookup(session_id)
            except InvalidSession as e:
                return _protocol_error(e, request_id)
            return await _handle_message(request, session, body)

        if is_initialize_request(body):
            session = await sessions.create()
            response = await _handle_message(request, session, body)
            if session.state != SessionState.ACTIVE:
                await sessions.remove(session.id)
                return response
            response.headers[SESSION_HEADER] = session.id
            return response

        return _protocol_error(
            InvalidSession("Bad Request: No valid session ID provided"), request_id
        )
    except Exception:
        logger.exception("Error handling MCP request")
        return _protocol_error(
            ProtocolError("Internal server error", code=INTERNAL_ERROR),
            request_id,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    finally:
        clear_request_context()


async def _handle_message(request: Request, session: Session, body: Any) -> Response:
    """Handle one JSON-RPC message in the session's arrival order."""
    handler: ProtocolHandler = request.app.state.protocol

    try:
        message = JsonRpcRequest.parse(body)
    except ProtocolError as e:
        return _protocol_error(e, body.get("id") if isinstance(body, dict) else None)

    async with session.channel.request_lock:
        if not session.is_open:
            logger.info("Rejecting queued request for closed session", session_id=session.id)
            return _protocol_error(InvalidSession("Session closed"), message.id)
        response = await handler.handle(session, message)

    if not session.is_open:
        # closed while this request was in flight; its result is discarded
        logger.info("Discarding response for closed session", session_id=session.id)
        return _protocol_error(InvalidSession("Session closed"), message.id)

    if response is None:
        return Response(status_code=status.HTTP_202_ACCEPTED)
    return JSONResponse(content=response)


@router.get("/mcp", tags=["MCP"], dependencies=[Depends(require_api_key)])
async def mcp_stream(request: Request):
    sessions: SessionRegistry = request.app.state.sessions
    try:
        session = sessions.lookup(request.headers.get(SESSION_HEADER))
    except InvalidSession as e:
        return _protocol_error(e)

    async def events() -> AsyncIterator[str]:
        async for message in session.channel.stream():
            yield f"event: message\ndata: {json.dumps(message)}\n\n"

    logger.info("Session stream opened", session_id=session.id)
    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", SESSION_HEADER: session.id},
    )


@router.delete("/mcp", tags=["MCP"], dependencies=[Depends(require_api_key)])
async def mcp_delete(request: Request):
    sessions: SessionRegistry = request.app.state.sessions
    try:
        session = await sessions.remove(request.headers.get(SESSION_HEADER))
    except InvalidSession as e:
        return _protocol_error(e)

    return {"sessionId": session.id, "status": session.state.value}


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[KycServices] = None,
    audit_logger: Optional[AuditLogger] = None
) -> FastAPI:
    """
    Build the application with its own registries.

    Args:
        settings: Application settings (defaults to the cached settings)
        services: Provider services (defaults to clients built from settings)
        audit_logger: Audit logger (defaults to one built from settings)
    """
    settings = settings or get_settings()
    services = services or KycServices.from_settings(settings)
    audit_logger = audit_logger or AuditLogger(
        log_path=settings.server.audit_log_path,
        enabled=settings.server.enable_audit,
    )

    tool_registry = ToolRegistry()
    register_kyc_tools(tool_registry, services)
    dispatcher = ToolDispatcher(tool_registry, audit_logger)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, json_output=settings.environment == "production")
        if not settings.secured:
            logger.warning("MCP_API_KEY not set - server is NOT secured")
        logger.info(
            "KYC MCP Server started",
            tool_count=len(tool_registry),
            secured=settings.secured,
            **services.status()
        )

        yield

        logger.info("Shutting down KYC MCP Server")
        await app.state.sessions.close_all()
        await audit_logger.flush()
        await services.close()

    app = FastAPI(
        title=SERVER_NAME,
        description="MCP server for KYC document evaluation",
        version=SERVER_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.services = services
    app.state.auth = APIKeyAuth(AuthConfig(api_key=settings.api_key))
    app.state.sessions = SessionRegistry()
    app.state.tool_registry = tool_registry
    app.state.protocol = ProtocolHandler(
        dispatcher,
        resources=[KYC_GUIDELINES],
        server_name="KYC Document Evaluation",
        server_version=SERVER_VERSION,
    )

    app.include_router(router)
    return app


def main():
    """Run the KYC MCP Server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mcp_server.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()
