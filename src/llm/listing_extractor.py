"""Turn a listing URL or free-text description into structured property fields.

The model is treated as untrusted: missing fields default to zero or empty,
numbers are coerced from strings, and anything that does not parse is a
failed extraction rather than an exception.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.exceptions import LLMError
from core.logging_config import get_logger
from core.utils import clamp, coerce_number
from llm.client import LLMClient, extract_json, get_llm_client

LOGGER = get_logger(__name__)

DEFAULT_RATING = 3

LISTING_PROMPT = """Extract the real estate listing at the following link or description.

Listing: "{source}"

Respond with a single JSON object in exactly this shape:
{{
    "title": "short descriptive title",
    "price": number,
    "rooms": integer,
    "bathrooms": integer,
    "location": "neighbourhood and city",
    "exactAddress": "street and number if known, else empty",
    "sqft": number,
    "fees": number,
    "environments": integer,
    "toilets": integer,
    "parking": integer,
    "coveredSqft": number,
    "uncoveredSqft": number,
    "age": integer,
    "floor": "floor label if known",
    "dealScore": 0-100,
    "analysis": {{"pros": ["..."], "cons": ["..."], "strategy": "one paragraph"}}
}}
Use 0 or an empty string for anything you cannot determine."""


@dataclass
class ListingAnalysis:
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    strategy: str = ""


@dataclass
class ExtractedListing:
    """Structured candidate record from the AI parser."""

    title: str = ""
    price: float = 0
    rooms: int = 0
    bathrooms: int = 0
    location: str = ""
    exact_address: str = ""
    sqft: float = 0
    fees: float = 0
    environments: int = 0
    toilets: int = 0
    parking: int = 0
    covered_sqft: float = 0
    uncovered_sqft: float = 0
    age: int = 0
    floor: str = ""
    deal_score: float = 0
    analysis: ListingAnalysis = field(default_factory=ListingAnalysis)

    @property
    def rating(self) -> int:
        """Deal score (0-100) folded into a 1-5 rating; 3 when unknown."""
        derived = math.floor(self.deal_score / 20 + 0.5)
        return clamp(derived, 1, 5) if derived else DEFAULT_RATING

    @property
    def notes(self) -> str:
        return self.analysis.strategy

    def draft_fields(self) -> Dict[str, Any]:
        """Fields to seed a property draft with."""
        fields_: Dict[str, Any] = {
            "title": self.title,
            "price": self.price,
            "rooms": self.rooms,
            "bathrooms": self.bathrooms,
            "sqft": self.sqft,
            "fees": self.fees,
            "environments": self.environments,
            "toilets": self.toilets,
            "parking": self.parking,
            "covered_sqft": self.covered_sqft,
            "uncovered_sqft": self.uncovered_sqft,
            "age": self.age,
            "rating": self.rating,
            "notes": self.notes,
        }
        if self.floor:
            fields_["floor"] = self.floor
        if self.location:
            fields_["address"] = self.location
        if self.exact_address or self.location:
            fields_["exact_address"] = self.exact_address or self.location
        return fields_

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.draft_fields(),
            "location": self.location,
            "deal_score": self.deal_score,
            "analysis": {
                "pros": list(self.analysis.pros),
                "cons": list(self.analysis.cons),
                "strategy": self.analysis.strategy,
            },
        }


@dataclass
class ExtractionResult:
    ok: bool
    listing: Optional[ExtractedListing] = None
    error: Optional[str] = None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _int(value: Any) -> int:
    return int(round(coerce_number(value)))


def _strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def parse_listing_payload(payload: Any) -> ExtractedListing:
    """
    Normalize the model's JSON object into an ``ExtractedListing``.

    Raises:
        ValueError: If the payload is not a non-empty JSON object.
    """
    if not isinstance(payload, dict) or not payload:
        raise ValueError("Listing payload is empty or not an object")

    analysis = payload.get("analysis") if isinstance(payload.get("analysis"), dict) else {}
    return ExtractedListing(
        title=_text(payload.get("title")),
        price=coerce_number(payload.get("price")),
        rooms=_int(payload.get("rooms")),
        bathrooms=_int(payload.get("bathrooms")),
        location=_text(payload.get("location")),
        exact_address=_text(payload.get("exactAddress")),
        sqft=coerce_number(payload.get("sqft")),
        fees=coerce_number(payload.get("fees")),
        environments=_int(payload.get("environments")),
        toilets=_int(payload.get("toilets")),
        parking=_int(payload.get("parking")),
        covered_sqft=coerce_number(payload.get("coveredSqft")),
        uncovered_sqft=coerce_number(payload.get("uncoveredSqft")),
        age=_int(payload.get("age")),
        floor=str(payload.get("floor") or "").strip(),
        deal_score=coerce_number(payload.get("dealScore")),
        analysis=ListingAnalysis(
            pros=_strings(analysis.get("pros")),
            cons=_strings(analysis.get("cons")),
            strategy=_text(analysis.get("strategy")),
        ),
    )


class ListingExtractor:
    """AI listing parser. ``extract`` never raises."""

    def __init__(self, client: Optional[LLMClient] = None):
        self._client = client

    @property
    def client(self) -> LLMClient:
        if self._client is None:
            self._client = get_llm_client()
        return self._client

    def extract(self, source: str) -> ExtractionResult:
        source = (source or "").strip()
        if not source:
            return ExtractionResult(ok=False, error="Nothing to extract")

        if not self.client.is_available():
            return ExtractionResult(ok=False, error="No LLM provider configured")

        try:
            reply = self.client.generate_completion(
                prompt=LISTING_PROMPT.format(source=source[:4000]),
                temperature=0.1,
            )
            listing = parse_listing_payload(extract_json(reply))
        except (LLMError, ValueError) as e:
            LOGGER.warning(f"Listing extraction failed: {e}")
            return ExtractionResult(ok=False, error=str(e))

        return ExtractionResult(ok=True, listing=listing)


__all__ = [
    "ExtractedListing",
    "ExtractionResult",
    "ListingAnalysis",
    "ListingExtractor",
    "parse_listing_payload",
]
