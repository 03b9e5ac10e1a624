"""Client for the public GLEIF LEI registry."""

import re
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from connectors.base import RESTClient
from shared.errors import UpstreamError

LEI_PATTERN = re.compile(r"^[A-Z0-9]{20}$")


def is_valid_lei_format(code: str) -> bool:
    """LEI codes are exactly 20 uppercase alphanumeric characters."""
    return bool(LEI_PATTERN.match(code))


class LegalAddress(BaseModel):
    address_lines: Optional[list[str]] = Field(default=None, serialization_alias="addressLines")
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, serialization_alias="postalCode")


class LeiRecord(BaseModel):
    """The parts of a GLEIF ``lei-records`` entry used by the KYC tools."""
    lei: str
    legal_name: Optional[str] = Field(default=None, serialization_alias="legalName")
    other_names: list[str] = Field(default_factory=list, serialization_alias="otherNames")
    legal_address: LegalAddress = Field(default_factory=LegalAddress, serialization_alias="legalAddress")
    jurisdiction: Optional[str] = None
    entity_status: Optional[str] = Field(default=None, serialization_alias="status")
    registration_status: Optional[str] = Field(default=None, serialization_alias="registrationStatus")
    initial_registration_date: Optional[str] = Field(
        default=None, serialization_alias="initialRegistrationDate"
    )
    last_update_date: Optional[str] = Field(default=None, serialization_alias="lastUpdateDate")
    next_renewal_date: Optional[str] = Field(default=None, serialization_alias="nextRenewalDate")
    managing_lou: Optional[str] = Field(default=None, serialization_alias="managingLou")

    @classmethod
    def from_api(cls, record: dict[str, Any]) -> "LeiRecord":
        attributes = record.get("attributes") or {}
        entity = attributes.get("entity") or {}
        registration = attributes.get("registration") or {}
        address = entity.get("legalAddress") or {}

        return cls(
            lei=attributes.get("lei") or record.get("id", ""),
            legal_name=(entity.get("legalName") or {}).get("name"),
            other_names=[n.get("name") for n in entity.get("otherNames") or [] if n.get("name")],
            legal_address=LegalAddress(
                address_lines=address.get("addressLines"),
                city=address.get("city"),
                country=address.get("country"),
                postal_code=address.get("postalCode"),
            ),
            jurisdiction=entity.get("jurisdiction"),
            entity_status=entity.get("status"),
            registration_status=registration.get("status"),
            initial_registration_date=registration.get("initialRegistrationDate"),
            last_update_date=registration.get("lastUpdateDate"),
            next_renewal_date=registration.get("nextRenewalDate"),
            managing_lou=registration.get("managingLou"),
        )


class GleifClient(RESTClient):
    """Search-by-name and get-by-id over the GLEIF API."""

    provider = "GLEIF"

    def __init__(
        self,
        base_url: str = "https://api.gleif.org/api/v1",
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None
    ) -> None:
        super().__init__(base_url=base_url, timeout=timeout, http=http)

    _headers = {"Accept": "application/vnd.api+json"}

    async def search_by_name(self, name: str, page_size: int = 5) -> list[LeiRecord]:
        """Search LEI records by legal name."""
        data = await self._request(
            "GET",
            "lei-records",
            params={"filter[entity.legalName]": name, "page[size]": str(page_size)},
            headers=self._headers,
        )
        return [LeiRecord.from_api(record) for record in data.get("data") or []]

    async def get_by_lei(self, lei: str) -> Optional[LeiRecord]:
        """Fetch one LEI record; None if the registry does not know it."""
        try:
            data = await self._request("GET", f"lei-records/{lei}", headers=self._headers)
        except UpstreamError as e:
            if e.status_code == 404:
                return None
            raise
        return LeiRecord.from_api(data.get("data") or {})
