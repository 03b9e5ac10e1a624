"""Provider services shared by the KYC tools.

One ``KycServices`` instance is built per application and injected into the
tool handlers; it owns the provider clients and the credential cache.
"""

from dataclasses import dataclass, field
from typing import Optional

from connectors.credentials import CredentialCache
from connectors.dataverse import DataverseClient
from connectors.document_intelligence import DocumentIntelligenceClient
from connectors.gleif import GleifClient
from connectors.perplexity import PerplexityClient
from connectors.polling import AsyncOperationPoller
from kyc.risk import (
    AdverseMediaCheck,
    LeiVerificationCheck,
    RegistrySearchCheck,
    RiskAggregator,
)
from kyc.screening import (
    ADVERSE_MEDIA_TERMS,
    KYC_RED_FLAG_TERMS,
    KeywordClassifier,
    RedFlagClassifier,
)
from shared.config import Settings
from shared.errors import ProviderNotConfigured
from shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class KycServices:
    """Provider clients; a client is None when its provider is unconfigured."""
    gleif: GleifClient
    records: Optional[DataverseClient] = None
    credentials: Optional[CredentialCache] = None
    documents: Optional[DocumentIntelligenceClient] = None
    screening: Optional[PerplexityClient] = None
    screening_classifier: RedFlagClassifier = field(
        default_factory=lambda: KeywordClassifier(ADVERSE_MEDIA_TERMS)
    )
    kyc_classifier: RedFlagClassifier = field(
        default_factory=lambda: KeywordClassifier(KYC_RED_FLAG_TERMS)
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "KycServices":
        timeout = settings.server.http_timeout_seconds

        credentials = records = None
        dv = settings.dataverse
        if dv.configured:
            credentials = CredentialCache.for_tenant(
                authority=dv.authority,
                tenant_id=dv.tenant_id,
                client_id=dv.client_id,
                client_secret=dv.client_secret,
                resource_url=dv.url,
                timeout=timeout,
                safety_margin=dv.token_safety_margin_seconds,
            )
            records = DataverseClient(
                dv.url, credentials, api_version=dv.api_version, timeout=timeout
            )
        else:
            logger.warning("Dataverse credentials not fully configured")

        documents = None
        di = settings.document_intelligence
        if di.configured:
            documents = DocumentIntelligenceClient(
                di.endpoint,
                di.key,
                poller=AsyncOperationPoller(
                    interval=di.poll_interval_seconds,
                    max_attempts=di.max_poll_attempts,
                ),
                model_id=di.model_id,
                api_version=di.api_version,
                timeout=timeout,
            )
        else:
            logger.warning("Document Intelligence not configured; text extraction disabled")

        screening = None
        sc = settings.screening
        if sc.configured:
            screening = PerplexityClient(
                sc.api_key,
                base_url=sc.base_url,
                model=sc.model,
                temperature=sc.temperature,
                timeout=timeout,
            )
        else:
            logger.warning("Perplexity API key not set; adverse media screening disabled")

        return cls(
            gleif=GleifClient(settings.gleif.base_url, timeout=timeout),
            records=records,
            credentials=credentials,
            documents=documents,
            screening=screening,
        )

    def require_records(self) -> DataverseClient:
        if self.records is None:
            raise ProviderNotConfigured("Dataverse")
        return self.records

    def require_documents(self) -> DocumentIntelligenceClient:
        if self.documents is None:
            raise ProviderNotConfigured("Document Intelligence")
        return self.documents

    def risk_aggregator(self) -> RiskAggregator:
        """Checks in their fixed order: registry, identifier, screening."""
        return RiskAggregator([
            RegistrySearchCheck(self.gleif),
            LeiVerificationCheck(self.gleif),
            AdverseMediaCheck(self.screening, self.kyc_classifier),
        ])

    def status(self) -> dict[str, bool]:
        return {
            "dataverseConfigured": self.records is not None,
            "docIntelligenceConfigured": self.documents is not None,
            "screeningConfigured": self.screening is not None,
        }

    async def close(self) -> None:
        for client in (self.gleif, self.records, self.documents, self.screening, self.credentials):
            if client is not None:
                await client.close()
