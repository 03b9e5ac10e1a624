"""Customer and document tools backed by the record store.

Provides tools for:
- Customer listing, lookup and status updates
- Customer document listing and text extraction
- Status summary across all applications
"""

import re
from typing import Any, Optional

from connectors.dataverse import odata_quote
from kyc import records
from kyc.records import (
    CUSTOMER_STATUS_LABELS,
    CustomerDetails,
    CustomerDocuments,
    CustomerSummary,
    DocumentSummary,
    DocumentText,
    KycSummary,
    StatusCounts,
)
from kyc.services import KycServices
from shared.logging import get_logger
from shared.models import ExecutionType, ToolDefinition, ToolInvocation
from mcp_server.registry import ToolHandler, ToolRegistry

logger = get_logger(__name__)

GUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
_GUID = re.compile(GUID_PATTERN)

STATUS_DESCRIPTION = "1=Pending, 2=Under Review, 3=Approved, 4=Rejected"


class CustomerTools:
    """Tool definitions and handlers for KYC customers and their documents."""

    def __init__(self, services: KycServices) -> None:
        self.services = services
        self._tools: dict[str, tuple[ToolDefinition, ToolHandler]] = {}
        self._define_tools()

    def _define_tools(self) -> None:
        self._tools["list_customers"] = (
            ToolDefinition(
                name="list_customers",
                description=f"List all KYC customers. Can filter by status ({STATUS_DESCRIPTION}).",
                input_schema={
                    "type": "object",
                    "properties": {
                        "status": {
                            "type": "integer",
                            "enum": [1, 2, 3, 4],
                            "description": f"Filter by status: {STATUS_DESCRIPTION}"
                        }
                    },
                    "required": []
                },
            ),
            self._list_customers,
        )

        self._tools["get_customer"] = (
            ToolDefinition(
                name="get_customer",
                description="Get detailed information about a specific KYC customer by name or ID.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "customerId": {
                            "type": "string",
                            "pattern": GUID_PATTERN,
                            "description": "The customer GUID ID"
                        },
                        "customerName": {
                            "type": "string",
                            "description": "The customer name to search for (partial match supported)"
                        }
                    },
                    "required": []
                },
            ),
            self._get_customer,
        )

        self._tools["get_customer_documents"] = (
            ToolDefinition(
                name="get_customer_documents",
                description="List all documents uploaded for a specific customer.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "customerId": {
                            "type": "string",
                            "pattern": GUID_PATTERN,
                            "description": "The customer GUID ID (required)"
                        }
                    },
                    "required": ["customerId"]
                },
            ),
            self._get_customer_documents,
        )

        self._tools["read_document_content"] = (
            ToolDefinition(
                name="read_document_content",
                description=(
                    "Extract and read the text content from a KYC document. Uses Azure "
                    "Document Intelligence for PDF/image OCR. You can provide either the "
                    "document GUID ID or the filename."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "documentId": {
                            "type": "string",
                            "description": "The document GUID ID"
                        },
                        "filename": {
                            "type": "string",
                            "description": "The document filename to search for"
                        }
                    },
                    "required": []
                },
            ),
            self._read_document_content,
        )

        self._tools["update_customer_status"] = (
            ToolDefinition(
                name="update_customer_status",
                description="Update the KYC status of a customer after document evaluation.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "customerId": {
                            "type": "string",
                            "pattern": GUID_PATTERN,
                            "description": "The customer GUID ID (required)"
                        },
                        "status": {
                            "type": "integer",
                            "enum": [1, 2, 3, 4],
                            "description": f"New status: {STATUS_DESCRIPTION} (required)"
                        }
                    },
                    "required": ["customerId", "status"]
                },
                execution_type=ExecutionType.WRITE,
            ),
            self._update_customer_status,
        )

        self._tools["get_kyc_summary"] = (
            ToolDefinition(
                name="get_kyc_summary",
                description="Get a summary of KYC applications including counts by status.",
                input_schema={"type": "object", "properties": {}, "required": []},
            ),
            self._get_kyc_summary,
        )

    def register(self, registry: ToolRegistry) -> None:
        for definition, handler in self._tools.values():
            registry.register(definition, handler)

    async def _list_customers(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> list[CustomerSummary]:
        status: Optional[int] = params.get("status")

        rows = await self.services.require_records().list_records(
            records.CUSTOMERS,
            select=records.CUSTOMER_LIST_COLUMNS,
            filter=f"{records.STATUS_FIELD} eq {status}" if status else None,
            orderby="createdon desc",
        )
        customers = [CustomerSummary.from_record(row) for row in rows]

        logger.info("Customers listed", count=len(customers), status=status)
        return customers

    async def _get_customer(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> CustomerDetails | str:
        customer_id = params.get("customerId")
        customer_name = params.get("customerName")
        store = self.services.require_records()

        if customer_id:
            record = await store.get_record(records.CUSTOMERS, customer_id)
        elif customer_name:
            name = odata_quote(customer_name)
            rows = await store.list_records(
                records.CUSTOMERS,
                filter=(
                    f"contains(cr_fullname,{name}) or contains(cr_firstname,{name}) "
                    f"or contains(cr_lastname,{name})"
                ),
                top=1,
            )
            if not rows:
                return f'No customer found matching "{customer_name}"'
            record = rows[0]
        else:
            return "Please provide either customerId or customerName"

        return CustomerDetails.from_record(record)

    async def _get_customer_documents(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> CustomerDocuments:
        customer_id = params["customerId"]

        rows = await self.services.require_records().list_records(
            records.DOCUMENTS,
            select=records.DOCUMENT_LIST_COLUMNS,
            filter=f"_cr_customerid_value eq {customer_id}",
            orderby="createdon desc",
        )
        documents = [DocumentSummary.from_record(row) for row in rows]

        return CustomerDocuments(
            customer_id=customer_id,
            document_count=len(documents),
            documents=documents,
        )

    async def _read_document_content(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> DocumentText | str:
        document_id = params.get("documentId")
        filename = params.get("filename")
        if not document_id and not filename:
            return "Either documentId or filename is required"

        store = self.services.require_records()

        if document_id and _GUID.match(document_id):
            document = await store.get_record(
                records.DOCUMENTS, document_id, select=records.DOCUMENT_CONTENT_COLUMNS
            )
        else:
            # a non-GUID documentId is treated as a filename
            search_name = filename or document_id
            quoted = odata_quote(search_name)
            rows = await store.list_records(
                records.DOCUMENTS,
                select=records.DOCUMENT_CONTENT_COLUMNS,
                filter=f"contains(cr_filename,{quoted}) or contains(cr_name,{quoted})",
                top=1,
            )
            if not rows:
                return f'No document found matching "{search_name}"'
            document = rows[0]

        if not document.get("cr_filecontent"):
            return "No file content found for this document"

        extracted = await self.services.require_documents().extract_text(
            document["cr_filecontent"], document.get("cr_mimetype")
        )

        return DocumentText(
            document_id=document.get("cr_kycdocumentid") or document_id,
            filename=document.get("cr_filename") or document.get("cr_name"),
            document_type=records.label(records.DOCUMENT_TYPE_LABELS, document.get("cr_documenttype")),
            mime_type=document.get("cr_mimetype"),
            page_count=extracted.page_count,
            extracted_text=extracted.content,
        )

    async def _update_customer_status(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> str:
        customer_id = params["customerId"]
        status = params["status"]

        await self.services.require_records().update_record(
            records.CUSTOMERS, customer_id, {records.STATUS_FIELD: status}
        )

        logger.info("Customer status updated", customer_id=customer_id, status=status)
        return f'Customer status updated to "{CUSTOMER_STATUS_LABELS[status]}" successfully.'

    async def _get_kyc_summary(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> KycSummary:
        rows = await self.services.require_records().list_records(
            records.CUSTOMERS,
            select=["cr_kyccustomerid", records.STATUS_FIELD],
        )
        statuses = [row.get(records.STATUS_FIELD) for row in rows]

        return KycSummary(
            total_customers=len(rows),
            by_status=StatusCounts(
                pending=statuses.count(1),
                under_review=statuses.count(2),
                approved=statuses.count(3),
                rejected=statuses.count(4),
            ),
        )
