"""Natural-language screening through the Perplexity chat completions API."""

from typing import Optional

import httpx
from pydantic import BaseModel, Field

from connectors.base import RESTClient


class ScreeningAnswer(BaseModel):
    """Free-text answer of the screening provider with its sources."""
    text: str
    citations: list[str] = Field(default_factory=list)


class PerplexityClient(RESTClient):
    """``ask(prompt)`` over the chat completions endpoint."""

    provider = "Perplexity"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.perplexity.ai",
        model: str = "sonar",
        temperature: float = 0.1,
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None
    ) -> None:
        super().__init__(base_url=base_url, timeout=timeout, http=http)
        self.api_key = api_key
        self.model = model
        self.temperature = temperature

    async def ask(self, prompt: str, system_prompt: str) -> ScreeningAnswer:
        data = await self._request(
            "POST",
            "chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                "temperature": self.temperature,
            },
        )

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        return ScreeningAnswer(text=text, citations=data.get("citations") or [])
