"""JSON-RPC method handling for MCP sessions.

Decodes the MCP methods a client sends over a session and routes
``tools/call`` to the Tool Dispatcher. Protocol violations raise
ProtocolError subclasses which are rendered as JSON-RPC error objects.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from shared.errors import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    ProtocolError,
)
from shared.logging import get_logger
from mcp_server.router import ToolDispatcher
from mcp_server.session import Session, SessionState

logger = get_logger(__name__)

LATEST_PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

RequestId = Union[int, str]


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request or notification."""
    jsonrpc: str = "2.0"
    method: str
    params: dict[str, Any] = Field(default_factory=dict)
    id: Optional[RequestId] = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set

    @classmethod
    def parse(cls, body: Any) -> "JsonRpcRequest":
        """
        Build a request from a decoded JSON body.

        Raises:
            ProtocolError: If the body is not a single JSON-RPC 2.0 message
        """
        if isinstance(body, list):
            raise ProtocolError("Batch requests are not supported", code=INVALID_REQUEST)
        if not isinstance(body, dict) or body.get("jsonrpc") != "2.0":
            raise ProtocolError("Invalid Request: expected a JSON-RPC 2.0 message")
        try:
            return cls.model_validate(body)
        except PydanticValidationError as e:
            raise ProtocolError(f"Invalid Request: {e.errors()[0]['msg']}") from e


def is_initialize_request(body: Any) -> bool:
    return isinstance(body, dict) and body.get("method") == "initialize" and "id" in body


def success_response(request_id: Optional[RequestId], result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: Optional[RequestId], error: ProtocolError) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": error.to_error()}


class Resource(BaseModel):
    """A static, readable MCP resource."""
    uri: str
    name: str
    description: str = ""
    mime_type: str = "text/plain"
    text: str

    def describe(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


class ProtocolHandler:
    """
    Handles the MCP methods of one session.

    Supported methods: initialize, ping, tools/list, tools/call,
    resources/list, resources/read, and any ``notifications/*``.
    """

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        resources: Optional[list[Resource]] = None,
        server_name: str = "KYC Document Evaluation",
        server_version: str = "1.0.0"
    ) -> None:
        self.dispatcher = dispatcher
        self.resources = {resource.uri: resource for resource in resources or []}
        self.server_info = {"name": server_name, "version": server_version}

        self._methods = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
        }

    async def handle(self, session: Session, request: JsonRpcRequest) -> Optional[dict[str, Any]]:
        """
        Handle one message on a session.

        Returns:
            The JSON-RPC response, or None for notifications
        """
        if request.is_notification:
            logger.debug("Notification received", method=request.method, session_id=session.id)
            return None

        method = self._methods.get(request.method)
        if method is None:
            return error_response(
                request.id,
                ProtocolError(f"Method not found: {request.method}", code=METHOD_NOT_FOUND),
            )

        try:
            result = await method(session, request)
        except ProtocolError as e:
            logger.warning(
                "Protocol error",
                method=request.method,
                session_id=session.id,
                error=e.message
            )
            return error_response(request.id, e)

        return success_response(request.id, result)

    async def _initialize(self, session: Session, request: JsonRpcRequest) -> dict[str, Any]:
        if session.state != SessionState.INITIALIZING:
            raise ProtocolError("Session already initialized")

        requested = request.params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION

        session.protocol_version = version
        session.client_info = request.params.get("clientInfo") or {}
        session.activate()

        logger.info(
            "Session initialized",
            session_id=session.id,
            protocol_version=version,
            client=session.client_info.get("name")
        )
        return {
            "protocolVersion": version,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"listChanged": False},
            },
            "serverInfo": self.server_info,
        }

    async def _ping(self, session: Session, request: JsonRpcRequest) -> dict[str, Any]:
        return {}

    async def _tools_list(self, session: Session, request: JsonRpcRequest) -> dict[str, Any]:
        return {"tools": self.dispatcher.registry.describe()}

    async def _tools_call(self, session: Session, request: JsonRpcRequest) -> dict[str, Any]:
        name = request.params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError("tools/call requires a tool name", code=INVALID_PARAMS)

        arguments = request.params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ProtocolError("tools/call arguments must be an object", code=INVALID_PARAMS)

        result = await self.dispatcher.invoke(
            name,
            arguments,
            correlation_id=str(request.id),
            session_id=session.id,
        )
        return result.to_mcp()

    async def _resources_list(self, session: Session, request: JsonRpcRequest) -> dict[str, Any]:
        return {"resources": [resource.describe() for resource in self.resources.values()]}

    async def _resources_read(self, session: Session, request: JsonRpcRequest) -> dict[str, Any]:
        uri = request.params.get("uri")
        resource = self.resources.get(uri)
        if resource is None:
            raise ProtocolError(f"Resource not found: {uri}", code=INVALID_PARAMS)

        return {
            "contents": [
                {"uri": resource.uri, "mimeType": resource.mime_type, "text": resource.text}
            ]
        }
