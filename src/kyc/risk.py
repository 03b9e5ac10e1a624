"""Risk aggregation for legal entity KYC.

A fixed sequence of independent checks runs against one subject. Each check
completes with zero or more risk factors, is skipped, or errors; a failing
check never stops the ones after it. The overall level depends only on how
many distinct risk factors were raised.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field, computed_field

from connectors.gleif import GleifClient, is_valid_lei_format
from connectors.perplexity import PerplexityClient
from kyc.screening import KYC_SYSTEM_PROMPT, RedFlagClassifier, kyc_screening_prompt
from shared.logging import get_logger

logger = get_logger(__name__)


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class CheckStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ERRORED = "error"


def risk_level_for(factor_count: int) -> RiskLevel:
    """0 -> LOW, 1-2 -> MEDIUM, 3 or more -> HIGH."""
    if factor_count >= 3:
        return RiskLevel.HIGH
    if factor_count >= 1:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class EntitySubject(BaseModel):
    """The legal entity being assessed."""
    company_name: str
    lei_code: Optional[str] = None


class CheckResult(BaseModel):
    """Outcome of one check."""
    name: str
    status: CheckStatus
    risk_factors: list[str] = Field(default_factory=list)
    detail: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def completed(cls, name: str, risk_factors: Optional[list[str]] = None, **data: Any) -> "CheckResult":
        return cls(name=name, status=CheckStatus.COMPLETED, risk_factors=risk_factors or [], data=data)

    @classmethod
    def skipped(cls, name: str, reason: str) -> "CheckResult":
        return cls(name=name, status=CheckStatus.SKIPPED, detail=reason)

    @classmethod
    def errored(cls, name: str, detail: str) -> "CheckResult":
        return cls(name=name, status=CheckStatus.ERRORED, detail=detail)


class RiskAssessment(BaseModel):
    """Combined result of all checks for one subject."""
    subject: str
    checks: list[CheckResult] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @computed_field
    @property
    def risk_factors(self) -> list[str]:
        """Distinct risk factors in the order they were first raised."""
        return list(dict.fromkeys(f for check in self.checks for f in check.risk_factors))

    @computed_field
    @property
    def overall_risk(self) -> RiskLevel:
        return risk_level_for(len(self.risk_factors))

    @computed_field
    @property
    def incomplete_checks(self) -> list[str]:
        return [check.name for check in self.checks if check.status == CheckStatus.ERRORED]

    @computed_field
    @property
    def complete(self) -> bool:
        return not self.incomplete_checks

    def check(self, name: str) -> Optional[CheckResult]:
        return next((c for c in self.checks if c.name == name), None)


class RiskCheck(Protocol):
    name: str

    async def run(self, subject: EntitySubject) -> CheckResult:
        ...


class RiskAggregator:
    """Runs checks in their fixed order and collects partial results."""

    def __init__(self, checks: list[RiskCheck]) -> None:
        self.checks = checks

    async def assess(self, subject: EntitySubject) -> RiskAssessment:
        assessment = RiskAssessment(subject=subject.company_name)

        for check in self.checks:
            try:
                result = await check.run(subject)
            except Exception as e:
                logger.warning(
                    "Risk check failed",
                    check=check.name,
                    subject=subject.company_name,
                    error=str(e)
                )
                result = CheckResult.errored(check.name, str(e))
            assessment.checks.append(result)

        logger.info(
            "Risk assessment completed",
            subject=subject.company_name,
            risk=assessment.overall_risk.value,
            factors=len(assessment.risk_factors),
            complete=assessment.complete
        )
        return assessment


class RegistrySearchCheck:
    """The company must exist in the GLEIF registry."""

    name = "gleif_search"

    def __init__(self, gleif: GleifClient, page_size: int = 3) -> None:
        self.gleif = gleif
        self.page_size = page_size

    async def run(self, subject: EntitySubject) -> CheckResult:
        matches = await self.gleif.search_by_name(subject.company_name, page_size=self.page_size)
        factors = [] if matches else ["Company not found in GLEIF registry"]
        return CheckResult.completed(
            self.name,
            factors,
            match_count=len(matches),
            matches=[
                {
                    "lei": m.lei,
                    "legalName": m.legal_name,
                    "status": m.entity_status,
                    "jurisdiction": m.jurisdiction,
                }
                for m in matches
            ],
        )


class LeiVerificationCheck:
    """A supplied LEI must exist and be in ISSUED registration status."""

    name = "lei_verification"

    def __init__(self, gleif: GleifClient) -> None:
        self.gleif = gleif

    async def run(self, subject: EntitySubject) -> CheckResult:
        if not subject.lei_code:
            return CheckResult.skipped(self.name, "No LEI code provided")

        if not is_valid_lei_format(subject.lei_code):
            return CheckResult.completed(
                self.name,
                ["Provided LEI has an invalid format"],
                valid=False,
            )

        record = await self.gleif.get_by_lei(subject.lei_code)
        if record is None:
            return CheckResult.completed(
                self.name,
                ["Provided LEI not found in GLEIF database"],
                valid=False,
            )

        factors = []
        if record.registration_status != "ISSUED":
            factors.append(f"LEI registration status: {record.registration_status}")

        return CheckResult.completed(
            self.name,
            factors,
            valid=True,
            legal_name=record.legal_name,
            entity_status=record.entity_status,
            registration_status=record.registration_status,
            next_renewal_date=record.next_renewal_date,
        )


class AdverseMediaCheck:
    """Screening text must not contain red flags."""

    name = "adverse_media"

    def __init__(
        self,
        client: Optional[PerplexityClient],
        classifier: RedFlagClassifier
    ) -> None:
        self.client = client
        self.classifier = classifier

    async def run(self, subject: EntitySubject) -> CheckResult:
        if self.client is None:
            return CheckResult.skipped(self.name, "Perplexity API key not configured")

        answer = await self.client.ask(kyc_screening_prompt(subject.company_name), KYC_SYSTEM_PROMPT)
        flags = self.classifier.classify(answer.text)

        return CheckResult.completed(
            self.name,
            ["Adverse media findings detected"] if flags else [],
            summary=answer.text,
            has_red_flags=bool(flags),
            red_flags=sorted(flags),
            sources=answer.citations,
        )
