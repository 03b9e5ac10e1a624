"""KYC tools.

Customer and document tools over the record store, legal entity due
diligence tools, and the verification guidelines resource.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kyc.services import KycServices
    from mcp_server.registry import ToolRegistry


def register_kyc_tools(registry: "ToolRegistry", services: "KycServices") -> None:
    """Register every KYC tool with the registry."""
    from kyc.customers import CustomerTools
    from kyc.due_diligence import DueDiligenceTools
    from shared.logging import get_logger

    CustomerTools(services).register(registry)
    DueDiligenceTools(services).register(registry)

    get_logger(__name__).info("KYC tools registered", tool_count=len(registry))


__all__ = ["register_kyc_tools"]
