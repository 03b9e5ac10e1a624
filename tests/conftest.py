"""Shared fixtures: in-memory record store and mocked provider transports."""

from typing import Any, Optional

import httpx
import pytest

from connectors.gleif import GleifClient
from connectors.perplexity import PerplexityClient
from kyc.services import KycServices
from mcp_server.audit import AuditLogger
from shared.config import Settings


API_KEY = "abc123"

CUSTOMER_ID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
DOCUMENT_ID = "9a8b7c6d-1234-4abc-8def-0123456789ab"

KNOWN_LEI = "5493001KJTIIGC8Y1R12"
LAPSED_LEI = "213800D1EI4B9WTWWD28"


def lei_record(lei: str, name: str, registration_status: str = "ISSUED") -> dict[str, Any]:
    return {
        "type": "lei-records",
        "id": lei,
        "attributes": {
            "lei": lei,
            "entity": {
                "legalName": {"name": name},
                "otherNames": [],
                "legalAddress": {
                    "addressLines": ["1 Main Street"],
                    "city": "London",
                    "country": "GB",
                    "postalCode": "EC1A 1AA",
                },
                "jurisdiction": "GB",
                "status": "ACTIVE",
            },
            "registration": {
                "status": registration_status,
                "initialRegistrationDate": "2014-01-01T00:00:00Z",
                "lastUpdateDate": "2024-01-01T00:00:00Z",
                "nextRenewalDate": "2025-01-01T00:00:00Z",
                "managingLou": "EVK05KS7XY1DEII3R011",
            },
        },
    }


GLEIF_RECORDS = {
    KNOWN_LEI: lei_record(KNOWN_LEI, "Acme Holdings Ltd"),
    LAPSED_LEI: lei_record(LAPSED_LEI, "Lapsed Widgets PLC", registration_status="LAPSED"),
}


def gleif_handler(request: httpx.Request) -> httpx.Response:
    """Fake GLEIF API: name search over GLEIF_RECORDS and get-by-LEI."""
    path = request.url.path
    if path.endswith("/lei-records"):
        query = request.url.params.get("filter[entity.legalName]", "").lower()
        size = int(request.url.params.get("page[size]", "5"))
        matches = [
            record for record in GLEIF_RECORDS.values()
            if query and query in record["attributes"]["entity"]["legalName"]["name"].lower()
        ]
        return httpx.Response(200, json={"data": matches[:size]})

    lei = path.rsplit("/", 1)[-1]
    if lei in GLEIF_RECORDS:
        return httpx.Response(200, json={"data": GLEIF_RECORDS[lei]})
    return httpx.Response(404, json={"errors": [{"status": "404", "title": "Not Found"}]})


def screening_handler(answer: str):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "choices": [{"message": {"role": "assistant", "content": answer}}],
            "citations": ["https://news.example.com/article"],
        })
    return handler


def make_gleif() -> GleifClient:
    return GleifClient(
        base_url="https://api.gleif.test/api/v1",
        http=httpx.AsyncClient(transport=httpx.MockTransport(gleif_handler)),
    )


def make_screening(answer: str) -> PerplexityClient:
    return PerplexityClient(
        "pplx-test",
        base_url="https://api.perplexity.test",
        http=httpx.AsyncClient(transport=httpx.MockTransport(screening_handler(answer))),
    )


class FakeRecordStore:
    """In-memory stand-in for the Dataverse client."""

    def __init__(
        self,
        customers: Optional[list[dict[str, Any]]] = None,
        documents: Optional[list[dict[str, Any]]] = None
    ) -> None:
        self.customers = customers or []
        self.documents = documents or []
        self.calls: list[tuple] = []

    def _table(self, entity_set: str) -> list[dict[str, Any]]:
        return self.customers if entity_set == "cr_kyccustomers" else self.documents

    async def list_records(self, entity_set, filter=None, select=None, orderby=None, top=None):
        self.calls.append(("list", entity_set, filter, top))
        rows = list(self._table(entity_set))
        if filter and " eq " in filter and "contains(" not in filter:
            column, _, value = filter.partition(" eq ")
            rows = [row for row in rows if str(row.get(column)) == value]
        if top is not None:
            rows = rows[:top]
        return rows

    async def get_record(self, entity_set, record_id, select=None):
        self.calls.append(("get", entity_set, record_id))
        key = "cr_kyccustomerid" if entity_set == "cr_kyccustomers" else "cr_kycdocumentid"
        for row in self._table(entity_set):
            if row.get(key) == record_id:
                return row
        raise LookupError(f"{entity_set}({record_id}) does not exist")

    async def update_record(self, entity_set, record_id, fields):
        self.calls.append(("update", entity_set, record_id, fields))
        return {}

    async def close(self):
        pass


@pytest.fixture
def customers():
    return [
        {
            "cr_kyccustomerid": CUSTOMER_ID,
            "cr_fullname": "Jane Doe",
            "cr_firstname": "Jane",
            "cr_lastname": "Doe",
            "cr_email": "jane@example.com",
            "cr_status": 1,
            "cr_idtype": 1,
            "cr_idnumber": "P1234567",
            "createdon": "2024-05-01T10:00:00Z",
        },
        {
            "cr_kyccustomerid": "0b1c2d3e-0000-4000-8000-000000000002",
            "cr_firstname": "John",
            "cr_lastname": "Smith",
            "cr_status": 3,
            "cr_idtype": 2,
            "createdon": "2024-04-01T10:00:00Z",
        },
    ]


@pytest.fixture
def record_store(customers):
    return FakeRecordStore(customers=customers)


@pytest.fixture
def services(record_store):
    return KycServices(gleif=make_gleif(), records=record_store)


@pytest.fixture
def settings():
    return Settings(api_key=API_KEY)


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(log_path=str(tmp_path / "audit.log"), enabled=True)


@pytest.fixture
def app(settings, services, audit_logger):
    from mcp_server.main import create_app

    return create_app(settings=settings, services=services, audit_logger=audit_logger)
