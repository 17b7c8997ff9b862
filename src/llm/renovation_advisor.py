"""AI suggestions for typical renovation cost lines."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.exceptions import LLMError
from core.logging_config import get_logger
from core.utils import coerce_number
from llm.client import LLMClient, extract_json, get_llm_client

LOGGER = get_logger(__name__)

RENOVATION_PROMPT = """Based on the property "{title}" in "{address}", suggest {count} typical renovation
categories and their estimated costs in EUR for a standard mid-range renovation.

Respond with a JSON array only:
[{{"category": "Kitchen", "description": "what the work covers", "estimatedCost": 12000}}]"""


@dataclass(frozen=True)
class RenovationSuggestion:
    category: str
    description: str
    estimated_cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "description": self.description,
            "estimated_cost": self.estimated_cost,
        }


class RenovationAdvisor:
    """Suggest renovation items for a property. Failure yields no suggestions."""

    def __init__(self, client: Optional[LLMClient] = None, count: int = 4):
        self._client = client
        self.count = count

    @property
    def client(self) -> LLMClient:
        if self._client is None:
            self._client = get_llm_client()
        return self._client

    def suggest(self, title: str, address: str) -> List[RenovationSuggestion]:
        if not self.client.is_available():
            return []

        try:
            reply = self.client.generate_completion(
                prompt=RENOVATION_PROMPT.format(title=title, address=address, count=self.count),
                temperature=0.3,
                max_tokens=600,
            )
            payload = extract_json(reply, opener="[")
        except (LLMError, ValueError) as e:
            LOGGER.warning(f"Renovation suggestion failed: {e}")
            return []

        if not isinstance(payload, list):
            return []

        suggestions = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            category = str(item.get("category") or "").strip()
            if not category:
                continue
            suggestions.append(
                RenovationSuggestion(
                    category=category,
                    description=str(item.get("description") or "").strip(),
                    estimated_cost=coerce_number(item.get("estimatedCost")),
                )
            )
        return suggestions


__all__ = ["RenovationAdvisor", "RenovationSuggestion"]
