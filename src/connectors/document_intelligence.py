"""Text extraction through Azure Document Intelligence.

Analysis is asynchronous on the provider side: the document is submitted,
the provider answers with an ``Operation-Location`` URL, and that URL is
polled until the analysis finishes.
"""

import base64
import binascii
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from connectors.base import RESTClient
from connectors.polling import AsyncOperationPoller
from shared.errors import OperationError, UpstreamError
from shared.logging import get_logger
from shared.models import OperationState, OperationStatus

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/pdf"

# Provider status strings
_STATES = {
    "notstarted": OperationState.QUEUED,
    "running": OperationState.RUNNING,
    "succeeded": OperationState.SUCCEEDED,
    "failed": OperationState.FAILED,
}


class DocumentSubmission(BaseModel):
    """Raw document handed to the analysis provider."""
    content: bytes
    mime_type: str = DEFAULT_MIME_TYPE


class ExtractedText(BaseModel):
    """Text content of an analysed document."""
    content: str
    page_count: int
    confidence: Optional[float] = None


class DocumentIntelligenceClient(RESTClient):
    """Submit/poll client for the ``prebuilt-read`` model."""

    provider = "Document Intelligence"

    def __init__(
        self,
        endpoint: str,
        key: str,
        poller: Optional[AsyncOperationPoller] = None,
        model_id: str = "prebuilt-read",
        api_version: str = "2024-11-30",
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None
    ) -> None:
        super().__init__(base_url=endpoint, timeout=timeout, http=http)
        self.key = key
        self.model_id = model_id
        self.api_version = api_version
        self.poller = poller or AsyncOperationPoller()

    async def submit(self, submission: DocumentSubmission) -> str:
        """Start an analysis and return its operation handle."""
        response = await self._send(
            "POST",
            f"documentintelligence/documentModels/{self.model_id}:analyze",
            params={"api-version": self.api_version},
            headers={
                "Ocp-Apim-Subscription-Key": self.key,
                "Content-Type": submission.mime_type or DEFAULT_MIME_TYPE,
            },
            content=submission.content,
        )

        handle = response.headers.get("Operation-Location")
        if not handle:
            raise UpstreamError(
                self.provider,
                response.status_code,
                "No operation location returned from Document Intelligence",
            )
        return handle

    async def poll_status(self, handle: str) -> OperationStatus:
        """Fetch the current status of an analysis."""
        data = await self._request(
            "GET", handle, headers={"Ocp-Apim-Subscription-Key": self.key}
        )

        raw_status = str(data.get("status", "")).lower()
        state = _STATES.get(raw_status)
        if state is None:
            raise OperationError(f"Unexpected analysis status: {data.get('status')!r}")

        return OperationStatus(
            state=state,
            result=data.get("analyzeResult"),
            error=data.get("error"),
        )

    async def extract_text(self, content_base64: str, mime_type: Optional[str]) -> ExtractedText:
        """
        Extract text from a base64-encoded document.

        Raises:
            ValueError: If the content is not valid base64
            UpstreamError: If a provider call fails
            OperationError: If the analysis fails
            OperationTimeoutError: If the analysis does not finish in time
        """
        try:
            raw = base64.b64decode(content_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Document content is not valid base64: {e}") from e

        submission = DocumentSubmission(content=raw, mime_type=mime_type or DEFAULT_MIME_TYPE)
        logger.info("Extracting text", mime_type=submission.mime_type, size=len(raw))

        result: dict[str, Any] = await self.poller.run(self.submit, self.poll_status, submission) or {}

        pages = result.get("pages") or []
        confidence = None
        if pages and pages[0].get("words"):
            confidence = pages[0]["words"][0].get("confidence")

        extracted = ExtractedText(
            content=result.get("content") or "",
            page_count=len(pages),
            confidence=confidence,
        )
        logger.info(
            "Text extracted",
            characters=len(extracted.content),
            pages=extracted.page_count
        )
        return extracted
