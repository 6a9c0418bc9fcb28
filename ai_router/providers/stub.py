"""
AI Router - Stub Provider Adapter

Deterministic in-process adapter used for smoke/integration testing.
No network calls, no provider keys required.
"""

from typing import Any, Dict, List, Optional

from .base import AdapterConfig, BaseAdapter, ProviderHealth
from ..core.models import Provider


class StubAdapter(BaseAdapter):
    """Deterministic adapter standing in for either provider."""

    def __init__(self, provider: Provider, config: Optional[AdapterConfig] = None):
        super().__init__(config or AdapterConfig(api_key="stub", model=f"{provider.value}-stub"))
        self.provider = provider

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        json_output: bool = False,
    ) -> str:
        if json_output:
            return "{}"
        return f"stub({self.provider.value}): deterministic response"

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(provider=self.provider, is_healthy=True, latency_ms=0)

    async def extract_meeting_intent(
        self,
        user_message: str,
        conversation_context: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        wants_meeting = any(
            word in user_message.lower() for word in ("meeting", "schedule", "call", "sync")
        )
        return {
            "intent": "create_meeting" if wants_meeting else "other",
            "confidence": 0.9 if wants_meeting else 0.2,
            "fields": {
                "start_time": None,
                "end_time": None,
                "duration": None,
                "purpose": None,
                "participants": [],
            },
            "missing": ["start_time", "participants"] if wants_meeting else [],
        }

    async def generate_meeting_titles(
        self,
        purpose: str,
        participants: List[str],
        context: str = "",
    ) -> Dict[str, Any]:
        topic = purpose.strip().rstrip(".") or "Team"
        return {
            "suggestions": [f"{topic} Sync", f"{topic} Review", f"{topic} Planning"],
            "context": purpose,
        }

    async def generate_meeting_agenda(
        self,
        title: str,
        purpose: str,
        participants: List[str],
        duration: int,
        context: str = "",
    ) -> str:
        return (
            f"# {title}\n\n"
            f"Purpose: {purpose}\n\n"
            f"1. Introductions (5 min)\n"
            f"2. Discussion ({max(duration - 10, 0)} min)\n"
            f"3. Next steps (5 min)\n"
        )

    async def generate_action_items(
        self,
        title: str,
        purpose: str,
        participants: List[str],
        topics: List[str],
        context: str = "",
    ) -> List[Dict[str, Any]]:
        owner = participants[0] if participants else None
        return [
            {"task": f"Follow up on {topic}", "assignee": owner, "deadline": None, "priority": "medium"}
            for topic in topics
        ]

    async def enhance_purpose_wording(
        self,
        purpose: str,
        title: str = "",
        participants: Optional[List[str]] = None,
        context: str = "",
    ) -> Dict[str, Any]:
        text = purpose.strip()
        return {
            "enhanced_purpose": text[:1].upper() + text[1:] if text else text,
            "key_points": [text] if text else [],
        }

    async def verify_attendees(self, emails: List[str]) -> List[Dict[str, Any]]:
        return [
            {"email": email, "valid": "@" in email and "." in email.split("@")[-1], "trusted": False}
            for email in emails
        ]

    async def extract_time_from_natural_language(
        self,
        text: str,
        context: str = "",
    ) -> Dict[str, Any]:
        return {"start_time": None, "end_time": None, "confidence": 0.0}
