"""Record store client for the Dataverse Web API (OData v4)."""

from typing import Any, Optional

import httpx

from connectors.base import RESTClient
from connectors.credentials import CredentialCache
from shared.logging import get_logger

logger = get_logger(__name__)


def odata_quote(value: str) -> str:
    """Quote a string literal for an OData ``$filter`` expression."""
    return "'" + value.replace("'", "''") + "'"


class DataverseClient(RESTClient):
    """
    Filtered list, get-by-id and single-field update over the Web API.

    Every request carries a bearer token from the shared CredentialCache.
    """

    provider = "Dataverse"

    def __init__(
        self,
        url: str,
        credentials: CredentialCache,
        api_version: str = "v9.2",
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None
    ) -> None:
        super().__init__(
            base_url=f"{url.rstrip('/')}/api/data/{api_version}",
            timeout=timeout,
            http=http,
        )
        self.credentials = credentials

    async def _headers(self) -> dict[str, str]:
        token = await self.credentials.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
            "Accept": "application/json",
            "Prefer": "return=representation",
        }

    async def list_records(
        self,
        entity_set: str,
        filter: Optional[str] = None,
        select: Optional[list[str]] = None,
        orderby: Optional[str] = None,
        top: Optional[int] = None
    ) -> list[dict[str, Any]]:
        """
        List records of an entity set.

        Args:
            entity_set: Entity set name (e.g. ``cr_kyccustomers``)
            filter: OData ``$filter`` expression
            select: Columns to return
            orderby: OData ``$orderby`` expression
            top: Maximum number of records

        Returns:
            The ``value`` array of the response
        """
        params: dict[str, str] = {}
        if select:
            params["$select"] = ",".join(select)
        if filter:
            params["$filter"] = filter
        if orderby:
            params["$orderby"] = orderby
        if top is not None:
            params["$top"] = str(top)

        logger.debug("Listing records", entity_set=entity_set, filter=filter)
        data = await self._request(
            "GET", entity_set, params=params, headers=await self._headers()
        )
        return data.get("value", [])

    async def get_record(
        self,
        entity_set: str,
        record_id: str,
        select: Optional[list[str]] = None
    ) -> dict[str, Any]:
        """Get one record by its id."""
        params = {"$select": ",".join(select)} if select else None
        return await self._request(
            "GET",
            f"{entity_set}({record_id})",
            params=params,
            headers=await self._headers(),
        )

    async def update_record(
        self,
        entity_set: str,
        record_id: str,
        fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a single atomic PATCH to a record."""
        logger.info("Updating record", entity_set=entity_set, record_id=record_id, fields=list(fields))
        return await self._request(
            "PATCH",
            f"{entity_set}({record_id})",
            json=fields,
            headers=await self._headers(),
        )
