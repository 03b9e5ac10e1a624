"""Record store layout and the record types returned by the customer tools.

All knowledge of the Dataverse table and column names lives in this module.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CUSTOMERS = "cr_kyccustomers"
DOCUMENTS = "cr_kycdocuments"

STATUS_FIELD = "cr_status"

CUSTOMER_STATUS_LABELS = {1: "Pending", 2: "Under Review", 3: "Approved", 4: "Rejected"}
ID_TYPE_LABELS = {1: "Passport", 2: "National ID", 3: "Driver's License"}
DOCUMENT_TYPE_LABELS = {1: "ID Document", 2: "Proof of Address", 3: "Income Statement", 4: "Other"}
DOCUMENT_STATUS_LABELS = {1: "Uploaded", 2: "Verified", 3: "Rejected"}

CUSTOMER_LIST_COLUMNS = [
    "cr_kyccustomerid", "cr_fullname", "cr_firstname", "cr_lastname", "cr_email",
    "cr_status", "cr_idtype", "cr_idnumber", "createdon",
]
DOCUMENT_LIST_COLUMNS = [
    "cr_kycdocumentid", "cr_name", "cr_filename", "cr_documenttype", "cr_filesize",
    "cr_mimetype", "cr_status", "createdon",
]
DOCUMENT_CONTENT_COLUMNS = [
    "cr_kycdocumentid", "cr_name", "cr_filename", "cr_documenttype", "cr_mimetype",
    "cr_filecontent",
]


def label(labels: dict[int, str], code: Any) -> str:
    return labels.get(code, "Unknown")


def full_name(record: dict[str, Any]) -> str:
    if record.get("cr_fullname"):
        return record["cr_fullname"]
    return f"{record.get('cr_firstname') or ''} {record.get('cr_lastname') or ''}".strip()


class RecordModel(BaseModel):
    """Serialized with camelCase keys for the agent."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerSummary(RecordModel):
    id: Optional[str] = None
    full_name: str = ""
    email: Optional[str] = None
    status: str = "Unknown"
    status_code: Optional[int] = None
    id_type: str = "Unknown"
    id_number: Optional[str] = None
    created_on: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CustomerSummary":
        return cls(
            id=record.get("cr_kyccustomerid"),
            full_name=full_name(record),
            email=record.get("cr_email"),
            status=label(CUSTOMER_STATUS_LABELS, record.get("cr_status")),
            status_code=record.get("cr_status"),
            id_type=label(ID_TYPE_LABELS, record.get("cr_idtype")),
            id_number=record.get("cr_idnumber"),
            created_on=record.get("createdon"),
        )


class CustomerDetails(CustomerSummary):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    modified_on: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CustomerDetails":
        summary = CustomerSummary.from_record(record)
        return cls(
            **summary.model_dump(),
            first_name=record.get("cr_firstname"),
            last_name=record.get("cr_lastname"),
            date_of_birth=record.get("cr_dateofbirth"),
            address=record.get("cr_address"),
            city=record.get("cr_city"),
            country=record.get("cr_country"),
            modified_on=record.get("modifiedon"),
        )


class DocumentSummary(RecordModel):
    id: Optional[str] = None
    name: Optional[str] = None
    filename: Optional[str] = None
    document_type: str = "Unknown"
    document_type_code: Optional[int] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    status: str = "Unknown"
    status_code: Optional[int] = None
    uploaded_on: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "DocumentSummary":
        return cls(
            id=record.get("cr_kycdocumentid"),
            name=record.get("cr_name") or record.get("cr_filename"),
            filename=record.get("cr_filename"),
            document_type=label(DOCUMENT_TYPE_LABELS, record.get("cr_documenttype")),
            document_type_code=record.get("cr_documenttype"),
            file_size=record.get("cr_filesize"),
            mime_type=record.get("cr_mimetype"),
            status=label(DOCUMENT_STATUS_LABELS, record.get("cr_status")),
            status_code=record.get("cr_status"),
            uploaded_on=record.get("createdon"),
        )


class CustomerDocuments(RecordModel):
    customer_id: str
    document_count: int
    documents: list[DocumentSummary] = Field(default_factory=list)


class DocumentText(RecordModel):
    document_id: Optional[str] = None
    filename: Optional[str] = None
    document_type: str = "Unknown"
    mime_type: Optional[str] = None
    page_count: int = 0
    extracted_text: str = ""


class StatusCounts(RecordModel):
    pending: int = 0
    under_review: int = 0
    approved: int = 0
    rejected: int = 0


class KycSummary(RecordModel):
    total_customers: int
    by_status: StatusCounts
