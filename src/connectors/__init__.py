"""Provider connectors.

Narrow async clients for the external collaborators: the record store and
its identity provider, the document analysis service, the LEI registry and
the screening service.
"""

from connectors.credentials import CredentialCache
from connectors.dataverse import DataverseClient
from connectors.document_intelligence import DocumentIntelligenceClient
from connectors.gleif import GleifClient
from connectors.perplexity import PerplexityClient
from connectors.polling import AsyncOperationPoller

__all__ = [
    "AsyncOperationPoller",
    "CredentialCache",
    "DataverseClient",
    "DocumentIntelligenceClient",
    "GleifClient",
    "PerplexityClient",
]
