"""Adverse media screening.

The screening provider answers in free text; deciding whether that text
contains red flags is the job of a pluggable classifier, independent of the
network call that produced the text.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, Protocol

from pydantic import Field

from connectors.perplexity import PerplexityClient
from kyc.records import RecordModel

SCREENING_SYSTEM_PROMPT = (
    "You are a KYC compliance analyst performing adverse media screening. "
    "Be thorough but factual. Always cite sources when available."
)
KYC_SYSTEM_PROMPT = "You are a KYC compliance analyst. Be factual and concise."

# Terms used by the standalone screening tool
ADVERSE_MEDIA_TERMS = (
    "sanction",
    "fraud",
    "money laundering",
    "indicted",
    "convicted",
    "regulatory action",
    "fine",
    "penalty",
)

# Narrower set used by the combined entity check
KYC_RED_FLAG_TERMS = ("sanction", "fraud", "money laundering", "convicted")


def screening_prompt(entity_name: str) -> str:
    return (
        "Search for any negative news, sanctions, fraud allegations, lawsuits, "
        f"regulatory actions, or controversies involving {entity_name}. Focus on:\n"
        "1. Sanctions lists (OFAC, EU, UN)\n"
        "2. Fraud or financial crimes\n"
        "3. Regulatory fines or enforcement actions\n"
        "4. Lawsuits or legal proceedings\n"
        "5. Money laundering allegations\n"
        "6. Politically exposed persons (PEP) connections\n"
        "7. Negative press coverage\n\n"
        "Provide a summary with sources. If nothing negative found, state that clearly."
    )


def kyc_screening_prompt(entity_name: str) -> str:
    return (
        "Search for any negative news, sanctions, fraud, lawsuits, or regulatory "
        f"issues involving {entity_name}. Be concise."
    )


class RedFlagClassifier(Protocol):
    """Maps screening text to the set of red-flag signals it contains."""

    def classify(self, text: str) -> set[str]:
        ...


class KeywordClassifier:
    """
    Flags a term when it starts a word in the text, case-insensitively.

    Matching is anchored at word starts so that "fine" matches "fined" but
    not "define", and "sanction" matches "sanctions" and "sanctioned".
    """

    def __init__(self, terms: Iterable[str]) -> None:
        self.terms = tuple(terms)
        self._patterns = {
            term: re.compile(r"\b" + re.escape(term.lower()))
            for term in self.terms
        }

    def classify(self, text: str) -> set[str]:
        lowered = text.lower()
        return {term for term, pattern in self._patterns.items() if pattern.search(lowered)}


class ScreeningResult(RecordModel):
    entity_name: str
    entity_type: str = "company"
    screening_result: str
    sources: list[str] = Field(default_factory=list)
    has_red_flags: bool
    red_flags: list[str] = Field(default_factory=list)
    screened_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


async def screen_entity(
    client: PerplexityClient,
    classifier: RedFlagClassifier,
    entity_name: str,
    entity_type: str = "company"
) -> ScreeningResult:
    """Ask the screening provider about an entity and classify the answer."""
    answer = await client.ask(screening_prompt(entity_name), SCREENING_SYSTEM_PROMPT)
    text = answer.text or "No results returned"
    flags = classifier.classify(text)

    return ScreeningResult(
        entity_name=entity_name,
        entity_type=entity_type,
        screening_result=text,
        sources=answer.citations,
        has_red_flags=bool(flags),
        red_flags=sorted(flags),
    )
