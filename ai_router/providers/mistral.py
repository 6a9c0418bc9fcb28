"""
AI Router - Mistral Provider Adapter

Adapter for the Mistral chat completions API.
"""

import time
from typing import Any, Dict, List, Optional

import httpx

from .base import AdapterConfig, BaseAdapter, ProviderHealth
from ..core.errors import ProviderResponseError
from ..core.models import Provider


class MistralAdapter(BaseAdapter):
    """Adapter for Mistral AI."""

    provider = Provider.MISTRAL
    DEFAULT_BASE_URL = "https://api.mistral.ai/v1"
    DEFAULT_MODEL = "mistral-small-latest"

    def __init__(self, config: AdapterConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self.model = config.model or self.DEFAULT_MODEL
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url or self.DEFAULT_BASE_URL,
            timeout=config.timeout,
            headers={"Authorization": f"Bearer {config.api_key}"},
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        json_output: bool = False,
    ) -> str:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(
            {"role": turn.get("role", "user"), "content": turn.get("content", "")}
            for turn in history or []
        )
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        if json_output:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise self._handle_error(e) from e

        choices = data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        if not content:
            raise ProviderResponseError(self.provider.value, "Mistral response contained no text")
        return content

    async def health_check(self) -> ProviderHealth:
        """List models as a cheap authenticated probe."""
        start = time.time()
        try:
            response = await self.client.get("/models")
        except httpx.HTTPError as e:
            return ProviderHealth(
                provider=self.provider,
                is_healthy=False,
                last_error=f"{type(e).__name__}: {e}",
            )

        latency = int((time.time() - start) * 1000)
        return ProviderHealth(
            provider=self.provider,
            is_healthy=response.status_code == 200,
            latency_ms=latency,
            last_error=None if response.status_code == 200 else f"HTTP {response.status_code}",
        )

    async def close(self):
        await self.client.aclose()
