"""
AI Router - Provider Adapter Base

Abstract base class for LLM provider adapters.

An adapter only implements transport (complete + health_check). The
calendar-assistant operations are built on top of complete() here, so
Gemini and Mistral expose the same operation set with the same
signatures and result shapes.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..core.errors import ProviderHTTPError, ProviderResponseError, parse_retry_after
from ..core.models import Provider


SUPPORTED_OPERATIONS = (
    "get_chat_response",
    "extract_meeting_intent",
    "generate_meeting_titles",
    "generate_meeting_agenda",
    "generate_action_items",
    "enhance_purpose_wording",
    "verify_attendees",
    "extract_time_from_natural_language",
)

ASSISTANT_SYSTEM_PROMPT = (
    "You are a calendar assistant that helps users schedule meetings, "
    "prepare agendas and track action items. Be concise."
)

_JSON_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


@dataclass
class AdapterConfig:
    """Configuration for a provider adapter."""
    api_key: str
    model: str
    base_url: Optional[str] = None
    timeout: float = 60.0


@dataclass
class ProviderHealth:
    """Health probe result for a provider."""
    provider: Provider
    is_healthy: bool
    latency_ms: Optional[int] = None
    last_error: Optional[str] = None


class BaseAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Subclasses implement:
    - complete: send one prompt (plus optional history) and return the text
    - health_check: cheap reachability probe
    """

    provider: Provider

    def __init__(self, config: AdapterConfig):
        self.config = config

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        json_output: bool = False,
    ) -> str:
        """
        Generate a completion.

        Args:
            prompt: Final user turn
            system: System instruction
            history: Earlier turns as {"role": "user"|"assistant", "content": ...}
            json_output: Ask the provider for a JSON-only answer

        Returns:
            Response text
        """

    @abstractmethod
    async def health_check(self) -> ProviderHealth:
        """Check provider reachability. Never raises."""

    async def close(self):
        """Release network resources."""

    def operations(self) -> Dict[str, Callable[..., Awaitable[Any]]]:
        """Bound operation callables, keyed by operation name."""
        return {name: getattr(self, name) for name in SUPPORTED_OPERATIONS}

    # ============================================================
    # Operations
    # ============================================================

    async def get_chat_response(self, messages: List[Dict[str, str]]) -> str:
        """Reply to a conversation given as role/content messages."""
        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        turns = [m for m in messages if m.get("role") != "system"]
        if not turns:
            raise ProviderResponseError(self.provider.value, "No user message to respond to")

        return await self.complete(
            turns[-1]["content"],
            system="\n".join(system_parts) or ASSISTANT_SYSTEM_PROMPT,
            history=turns[:-1],
        )

    async def extract_meeting_intent(
        self,
        user_message: str,
        conversation_context: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        context = "\n".join(
            f"{m.get('role', 'user')}: {m.get('content', '')}"
            for m in (conversation_context or [])[-10:]
        )
        prompt = (
            "Decide whether the user wants to schedule a meeting.\n"
            f"Conversation so far:\n{context or '(none)'}\n\n"
            f"Latest message: {user_message}\n\n"
            'Respond with JSON: {"intent": "create_meeting"|"schedule_meeting"|"other", '
            '"confidence": 0..1, "fields": {"start_time": string|null, "end_time": string|null, '
            '"duration": number|null, "purpose": string|null, "participants": [string]}, '
            '"missing": [string]}'
        )
        return await self._complete_json(prompt)

    async def generate_meeting_titles(
        self,
        purpose: str,
        participants: List[str],
        context: str = "",
    ) -> Dict[str, Any]:
        prompt = (
            "Suggest three short, professional meeting titles.\n"
            f"Purpose: {purpose}\n"
            f"Participants: {', '.join(participants) or 'not specified'}\n"
            f"Context: {context or 'none'}\n\n"
            'Respond with JSON: {"suggestions": [string, string, string], "context": string}'
        )
        return await self._complete_json(prompt)

    async def generate_meeting_agenda(
        self,
        title: str,
        purpose: str,
        participants: List[str],
        duration: int,
        context: str = "",
    ) -> str:
        prompt = (
            f"Write a meeting agenda in markdown for a {duration}-minute meeting.\n"
            f"Title: {title}\n"
            f"Purpose: {purpose}\n"
            f"Participants: {', '.join(participants) or 'not specified'}\n"
            f"Context: {context or 'none'}\n"
            "Include time allocations that add up to the meeting length."
        )
        return await self.complete(prompt, system=ASSISTANT_SYSTEM_PROMPT)

    async def generate_action_items(
        self,
        title: str,
        purpose: str,
        participants: List[str],
        topics: List[str],
        context: str = "",
    ) -> List[Dict[str, Any]]:
        prompt = (
            "List the action items that should come out of this meeting.\n"
            f"Title: {title}\n"
            f"Purpose: {purpose}\n"
            f"Participants: {', '.join(participants) or 'not specified'}\n"
            f"Topics: {', '.join(topics) or 'not specified'}\n"
            f"Context: {context or 'none'}\n\n"
            'Respond with a JSON array of {"task": string, "assignee": string|null, '
            '"deadline": string|null, "priority": "high"|"medium"|"low"}'
        )
        items = await self._complete_json(prompt)
        if not isinstance(items, list):
            raise ProviderResponseError(self.provider.value, "Expected a JSON array of action items")
        return items

    async def enhance_purpose_wording(
        self,
        purpose: str,
        title: str = "",
        participants: Optional[List[str]] = None,
        context: str = "",
    ) -> Dict[str, Any]:
        prompt = (
            "Rewrite this meeting purpose so it is clear and professional, "
            "and extract its key points.\n"
            f"Purpose: {purpose}\n"
            f"Title: {title or 'not specified'}\n"
            f"Participants: {', '.join(participants or []) or 'not specified'}\n"
            f"Context: {context or 'none'}\n\n"
            'Respond with JSON: {"enhanced_purpose": string, "key_points": [string]}'
        )
        return await self._complete_json(prompt)

    async def verify_attendees(self, emails: List[str]) -> List[Dict[str, Any]]:
        prompt = (
            "Check each email address for valid syntax and whether it looks like a "
            "real business or well-known provider address.\n"
            f"Emails: {json.dumps(emails)}\n\n"
            'Respond with a JSON array of {"email": string, "valid": bool, "trusted": bool} '
            "in the same order."
        )
        results = await self._complete_json(prompt)
        if not isinstance(results, list):
            raise ProviderResponseError(self.provider.value, "Expected a JSON array of attendees")
        return results

    async def extract_time_from_natural_language(
        self,
        text: str,
        context: str = "",
    ) -> Dict[str, Any]:
        prompt = (
            "Extract the meeting time from the text below. Use ISO 8601.\n"
            f"Text: {text}\n"
            f"Context: {context or 'none'}\n\n"
            'Respond with JSON: {"start_time": string|null, "end_time": string|null, '
            '"confidence": 0..1}'
        )
        return await self._complete_json(prompt)

    # ============================================================
    # Helper methods for subclasses
    # ============================================================

    async def _complete_json(self, prompt: str) -> Any:
        text = await self.complete(prompt, system=ASSISTANT_SYSTEM_PROMPT, json_output=True)
        return self._parse_json(text)

    def _parse_json(self, text: str) -> Any:
        """Parse a JSON answer, tolerating markdown code fences."""
        match = _JSON_BLOCK.search(text)
        payload = match.group(1) if match else text
        try:
            return json.loads(payload.strip())
        except json.JSONDecodeError as e:
            raise ProviderResponseError(
                self.provider.value,
                f"Response was not valid JSON: {e.msg}",
            ) from e

    def _handle_error(self, error: httpx.HTTPStatusError) -> ProviderHTTPError:
        """Convert an HTTP error into a classified ProviderHTTPError."""
        response = error.response
        message = ""
        try:
            error_info = response.json().get("error", {})
            if isinstance(error_info, dict):
                message = error_info.get("message", "")
            elif isinstance(error_info, str):
                message = error_info
        except (ValueError, AttributeError):
            message = response.text[:200]

        return ProviderHTTPError(
            self.provider.value,
            response.status_code,
            message=f"{self.provider.value} HTTP {response.status_code}: {message}" if message else "",
            retry_after_ms=parse_retry_after(response.headers.get("retry-after")),
        )
