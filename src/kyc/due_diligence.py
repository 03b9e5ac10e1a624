"""Legal entity due diligence tools.

Registry search, LEI verification, adverse media screening and the combined
legal entity KYC assessment.
"""

from typing import Any

from connectors.gleif import is_valid_lei_format
from kyc.risk import EntitySubject, RiskAssessment
from kyc.screening import ScreeningResult, screen_entity
from kyc.services import KycServices
from shared.logging import get_logger
from shared.models import ToolDefinition, ToolInvocation
from mcp_server.registry import ToolHandler, ToolRegistry

logger = get_logger(__name__)

SEARCH_PAGE_SIZE = 5


class DueDiligenceTools:
    """Tool definitions and handlers for legal entity checks."""

    def __init__(self, services: KycServices) -> None:
        self.services = services
        self._tools: dict[str, tuple[ToolDefinition, ToolHandler]] = {}
        self._define_tools()

    def _define_tools(self) -> None:
        self._tools["search_company"] = (
            ToolDefinition(
                name="search_company",
                description=(
                    "Search for a company in the GLEIF database by name. Returns LEI (Legal "
                    "Entity Identifier), legal name, address, jurisdiction, and registration "
                    "status. Use this to verify if a legal entity exists and get official "
                    "registry information."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "companyName": {
                            "type": "string",
                            "minLength": 1,
                            "description": "The company name to search for"
                        }
                    },
                    "required": ["companyName"]
                },
            ),
            self._search_company,
        )

        self._tools["verify_lei"] = (
            ToolDefinition(
                name="verify_lei",
                description=(
                    "Verify a Legal Entity Identifier (LEI) code against the GLEIF database. "
                    "Returns entity details and validates if the LEI is active, expired, or "
                    "invalid. LEI is a 20-character alphanumeric code."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "leiCode": {
                            "type": "string",
                            "description": "The 20-character LEI code to verify"
                        }
                    },
                    "required": ["leiCode"]
                },
            ),
            self._verify_lei,
        )

        self._tools["screen_adverse_media"] = (
            ToolDefinition(
                name="screen_adverse_media",
                description=(
                    "Screen a company or individual for adverse media, sanctions, fraud "
                    "allegations, lawsuits, and regulatory issues. Uses Perplexity AI to "
                    "search and synthesize findings from public sources. Essential for KYC "
                    "due diligence."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "entityName": {
                            "type": "string",
                            "minLength": 1,
                            "description": "The company or person name to screen"
                        },
                        "entityType": {
                            "type": "string",
                            "enum": ["company", "person"],
                            "description": "Whether this is a company or person (default: company)"
                        }
                    },
                    "required": ["entityName"]
                },
            ),
            self._screen_adverse_media,
        )

        self._tools["run_legal_entity_kyc"] = (
            ToolDefinition(
                name="run_legal_entity_kyc",
                description=(
                    "Run a comprehensive KYC check on a legal entity. This tool performs: "
                    "1) GLEIF search to verify company exists, 2) LEI validation if provided, "
                    "3) Adverse media screening. Returns a complete KYC assessment with risk flags."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "companyName": {
                            "type": "string",
                            "minLength": 1,
                            "description": "The company name to verify"
                        },
                        "leiCode": {
                            "type": "string",
                            "description": "Optional LEI code to verify (20 characters)"
                        }
                    },
                    "required": ["companyName"]
                },
            ),
            self._run_legal_entity_kyc,
        )

    def register(self, registry: ToolRegistry) -> None:
        for definition, handler in self._tools.values():
            registry.register(definition, handler)

    async def _search_company(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> dict[str, Any]:
        company_name = params["companyName"]
        matches = await self.services.gleif.search_by_name(company_name, page_size=SEARCH_PAGE_SIZE)

        logger.info("Company search", query=company_name, results=len(matches))
        return {
            "query": company_name,
            "resultCount": len(matches),
            "companies": [m.model_dump(by_alias=True) for m in matches],
        }

    async def _verify_lei(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> dict[str, Any]:
        lei_code = params["leiCode"]

        if not is_valid_lei_format(lei_code):
            return {
                "lei": lei_code,
                "valid": False,
                "error": "Invalid LEI format. LEI must be exactly 20 alphanumeric characters.",
            }

        record = await self.services.gleif.get_by_lei(lei_code)
        if record is None:
            return {"lei": lei_code, "valid": False, "error": "LEI not found in GLEIF database."}

        logger.info("LEI verified", lei=lei_code, legal_name=record.legal_name)
        return {"valid": True, **record.model_dump(by_alias=True, exclude={"other_names"})}

    async def _screen_adverse_media(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> ScreeningResult | str:
        if self.services.screening is None:
            return "Error: Perplexity API key not configured. Cannot perform adverse media screening."

        result = await screen_entity(
            self.services.screening,
            self.services.screening_classifier,
            params["entityName"],
            params.get("entityType", "company"),
        )

        logger.info("Adverse media screened", entity=result.entity_name, red_flags=result.has_red_flags)
        return result

    async def _run_legal_entity_kyc(
        self,
        params: dict[str, Any],
        invocation: ToolInvocation
    ) -> RiskAssessment:
        subject = EntitySubject(
            company_name=params["companyName"],
            lei_code=params.get("leiCode") or None,
        )
        return await self.services.risk_aggregator().assess(subject)
