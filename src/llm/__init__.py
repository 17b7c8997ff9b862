"""LLM helpers for listing extraction and renovation suggestions."""
from .client import LLMClient, extract_json, get_llm_client, reset_llm_client
from .listing_extractor import ExtractedListing, ExtractionResult, ListingAnalysis, ListingExtractor
from .renovation_advisor import RenovationAdvisor, RenovationSuggestion

__all__ = [
    "LLMClient",
    "extract_json",
    "get_llm_client",
    "reset_llm_client",
    "ExtractedListing",
    "ExtractionResult",
    "ListingAnalysis",
    "ListingExtractor",
    "RenovationAdvisor",
    "RenovationSuggestion",
]
