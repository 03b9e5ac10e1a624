"""API key authentication for the MCP server.

A shared secret may be required from clients. It is accepted from the
``x-api-key`` header, an ``Authorization: Bearer`` header, or the
``api_key`` query parameter. An ``Authorization`` header with another scheme
counts as a supplied but wrong key. With no secret configured every request is
accepted (insecure mode, logged at startup).
"""

import secrets
from typing import Optional

from fastapi import HTTPException, Request, status
from pydantic import BaseModel

from shared.logging import get_logger

logger = get_logger(__name__)

API_KEY_HEADER = "x-api-key"
API_KEY_QUERY_PARAM = "api_key"


class AuthConfig(BaseModel):
    """Authentication configuration."""
    api_key: Optional[str] = None

    @property
    def require_auth(self) -> bool:
        return bool(self.api_key)


def extract_api_key(request: Request) -> Optional[str]:
    """Return the key supplied by the client from any of the three carriers."""
    header_key = request.headers.get(API_KEY_HEADER)
    if header_key:
        return header_key

    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
        # any other scheme is compared as-is and so fails as a wrong key
        return authorization.strip()

    return request.query_params.get(API_KEY_QUERY_PARAM) or None


class APIKeyAuth:
    """
    FastAPI dependency enforcing the shared secret.

    Missing key -> 401, wrong key -> 403.
    """

    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def verify(self, provided: Optional[str], client: str = "unknown") -> None:
        """
        Check a supplied key against the configured one.

        Raises:
            HTTPException: 401 if no key was supplied, 403 if it does not match
        """
        if not self.config.require_auth:
            return

        if not provided:
            logger.warning("Rejected request without API key", client=client)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error": "Unauthorized",
                    "message": (
                        "API key required. Provide via x-api-key header, "
                        "Authorization: Bearer header, or api_key query parameter"
                    ),
                },
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not secrets.compare_digest(provided.encode(), self.config.api_key.encode()):
            logger.warning("Rejected request with invalid API key", client=client)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "Forbidden", "message": "Invalid API key"},
            )

    async def __call__(self, request: Request) -> None:
        client = request.client.host if request.client else "unknown"
        self.verify(extract_api_key(request), client=client)
