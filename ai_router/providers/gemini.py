"""
AI Router - Google Gemini Provider Adapter

Adapter for the Gemini generateContent REST API.
"""

import time
from typing import Any, Dict, List, Optional

import httpx

from .base import AdapterConfig, BaseAdapter, ProviderHealth
from ..core.errors import ProviderResponseError
from ..core.models import Provider


class GeminiAdapter(BaseAdapter):
    """Adapter for Google Gemini."""

    provider = Provider.GEMINI
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-2.0-flash-exp"

    def __init__(self, config: AdapterConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self.api_key = config.api_key
        self.model = config.model or self.DEFAULT_MODEL
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url or self.DEFAULT_BASE_URL,
            timeout=config.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        json_output: bool = False,
    ) -> str:
        payload = self._build_payload(prompt, system, history, json_output)
        url = f"/models/{self.model}:generateContent"

        try:
            response = await self.client.post(url, params={"key": self.api_key}, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise self._handle_error(e) from e

        return self._parse_response(data)

    async def health_check(self) -> ProviderHealth:
        """Check the configured model is reachable."""
        start = time.time()
        try:
            response = await self.client.get(
                f"/models/{self.model}", params={"key": self.api_key}
            )
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

    def _build_payload(
        self,
        prompt: str,
        system: Optional[str],
        history: Optional[List[Dict[str, str]]],
        json_output: bool,
    ) -> Dict[str, Any]:
        contents = [
            {
                "role": "model" if turn.get("role") == "assistant" else "user",
                "parts": [{"text": turn.get("content", "")}],
            }
            for turn in history or []
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        payload: Dict[str, Any] = {"contents": contents}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        if json_output:
            payload["generationConfig"] = {"responseMimeType": "application/json"}
        return payload

    def _parse_response(self, data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise ProviderResponseError(self.provider.value, f"Empty Gemini response: {reason}")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise ProviderResponseError(self.provider.value, "Gemini response contained no text")
        return text
