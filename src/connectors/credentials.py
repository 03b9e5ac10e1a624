"""Bearer token cache for the record store's identity provider.

Tokens are obtained with the OAuth2 client-credentials grant and reused
until they come within a safety margin of their expiry. Concurrent callers
share a single in-flight exchange.
"""

import asyncio
import time
from typing import Callable, Optional

import httpx

from shared.errors import CredentialError
from shared.logging import get_logger
from shared.models import Credential

logger = get_logger(__name__)

DEFAULT_SAFETY_MARGIN = 300.0


class CredentialCache:
    """
    Single-slot token cache with single-flight refresh.

    ``get_token()`` never touches the network while the cached token is
    fresh. When a refresh is needed exactly one exchange runs; every caller
    that arrives meanwhile awaits that same exchange and receives its token
    or its ``CredentialError``.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.safety_margin = safety_margin
        self._clock = clock
        self._http = http
        self._owns_http = http is None
        self._timeout = timeout

        self._credential: Optional[Credential] = None
        self._inflight: Optional[asyncio.Task[Credential]] = None
        self.exchange_count = 0

    @classmethod
    def for_tenant(
        cls,
        authority: str,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        resource_url: str,
        **kwargs
    ) -> "CredentialCache":
        """Build a cache for an Entra ID tenant and a resource's default scope."""
        return cls(
            token_url=f"{authority.rstrip('/')}/{tenant_id}/oauth2/v2.0/token",
            client_id=client_id,
            client_secret=client_secret,
            scope=f"{resource_url.rstrip('/')}/.default",
            **kwargs
        )

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    async def get_token(self) -> str:
        """
        Return a usable bearer token.

        Raises:
            CredentialError: If the token exchange fails
        """
        credential = self._credential
        if credential is not None and credential.is_fresh(self.safety_margin, self._clock()):
            return credential.token

        if self._inflight is None:
            self._inflight = asyncio.create_task(self._exchange())
            self._inflight.add_done_callback(self._clear_inflight)

        # shield: a cancelled waiter must not cancel the shared exchange
        credential = await asyncio.shield(self._inflight)
        return credential.token

    def _clear_inflight(self, task: "asyncio.Task[Credential]") -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # mark retrieved so an unawaited failure is not reported twice
            task.exception()

    async def _exchange(self) -> Credential:
        """Perform one client-credentials token exchange."""
        self.exchange_count += 1
        logger.info("Acquiring access token", scope=self.scope)

        client = self._http
        if client is None or client.is_closed:
            client = self._http = httpx.AsyncClient(timeout=self._timeout)
            self._owns_http = True

        try:
            response = await client.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": self.scope,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as e:
            logger.error("Token exchange failed", error=str(e))
            raise CredentialError(f"Token request failed: {e}") from e

        if not response.is_success:
            logger.error("Token exchange rejected", status_code=response.status_code)
            raise CredentialError(
                f"Failed to get access token ({response.status_code}): {response.text}"
            )

        try:
            data = response.json()
            credential = Credential(
                token=data["access_token"],
                expires_at=self._clock() + float(data["expires_in"]),
                scope=data.get("scope", self.scope),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise CredentialError(f"Malformed token response: {e}") from e

        self._credential = credential
        logger.info("Access token acquired", expires_in=data["expires_in"])
        return credential

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
        self._http = None
