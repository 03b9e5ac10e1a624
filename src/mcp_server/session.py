"""Session Registry for the MCP server.

Maps the ``Mcp-Session-Id`` of the streamable HTTP transport to the state of
one client connection and enforces its lifecycle:

    (no entry) -> INITIALIZING -> ACTIVE -> CLOSED

CLOSED is terminal; a closed session is evicted and its id is never accepted again.
"""

import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Optional

from shared.errors import InvalidSession
from shared.logging import get_logger

logger = get_logger(__name__)


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionChannel:
    """
    Transport handle of a session.

    Holds the FIFO lock that serializes the session's requests and the queue
    of server-to-client messages drained by the ``GET /mcp`` stream.
    """

    def __init__(self) -> None:
        self.request_lock = asyncio.Lock()
        self._outbound: asyncio.Queue[Optional[dict[str, Any]]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: dict[str, Any]) -> None:
        """Queue a server-initiated message for the stream."""
        if not self._closed:
            self._outbound.put_nowait(message)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._outbound.put_nowait(None)

    async def stream(self) -> AsyncIterator[dict[str, Any]]:
        """Yield queued messages until the channel is closed."""
        while True:
            message = await self._outbound.get()
            if message is None:
                return
            yield message


class Session:
    """State of one protocol-level connection."""

    def __init__(self, session_id: str) -> None:
        self.id = session_id
        self.channel = SessionChannel()
        self.created_at = datetime.utcnow()
        self.last_activity = self.created_at
        self.state = SessionState.INITIALIZING
        self.client_info: dict[str, Any] = {}
        self.protocol_version: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state != SessionState.CLOSED

    def activate(self) -> None:
        if self.state == SessionState.INITIALIZING:
            self.state = SessionState.ACTIVE

    def touch(self) -> None:
        self.last_activity = datetime.utcnow()

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self.channel.close()


class SessionRegistry:
    """
    Owns all live sessions of the process.

    Responsibilities:
    - Mint unique session ids
    - Resolve ids to sessions
    - Close and evict sessions
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def create(self) -> Session:
        """Allocate a fresh session in the INITIALIZING state."""
        async with self._lock:
            session_id = str(uuid.uuid4())
            while session_id in self._sessions:
                session_id = str(uuid.uuid4())

            session = Session(session_id)
            self._sessions[session_id] = session

        logger.info("Session created", session_id=session_id)
        return session

    def lookup(self, session_id: Optional[str]) -> Session:
        """
        Resolve a session id and record activity.

        Raises:
            InvalidSession: If the id is missing, unknown, or closed
        """
        session = self._sessions.get(session_id) if session_id else None
        if session is None or not session.is_open:
            raise InvalidSession("Bad Request: Invalid or missing session ID")

        session.touch()
        return session

    async def remove(self, session_id: Optional[str]) -> Session:
        """
        Close a session and evict it.

        Raises:
            InvalidSession: If the id is missing or unknown
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None) if session_id else None
            if session is None:
                raise InvalidSession("Bad Request: Invalid or missing session ID")
            session.close()

        logger.info("Session closed", session_id=session.id)
        return session

    async def close_all(self) -> None:
        """Close every session (process shutdown)."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            for session in sessions:
                session.close()

        logger.info("All sessions closed", count=len(sessions))

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
