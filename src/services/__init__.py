"""External lookups and pure view helpers for the acquisition tracker.

This module provides:
- Address validation against the Photon geocoder (debounced for editing)
- Listing previews (title + screenshot) with a deterministic fallback
- Dashboard filtering and sorting

External lookups share:
- Feature flag checks (ENABLE_* in .env)
- Graceful fallbacks (never raise to the caller)
- Caching (TTLCache for repeated lookups)
- Retry logic (with exponential backoff)
- Structured logging
"""
from __future__ import annotations

from .cache import TTLCache, CacheEntry, get_geocode_cache, get_preview_cache
from .retry import with_retry, NETWORK_ERRORS
from .address_validator import (
    AddressValidation,
    AddressValidator,
    DebouncedAddressValidator,
    ValidationStatus,
    compose_display,
)
from .metadata_fetcher import LinkMetadata, MetadataFetcher, fallback_screenshot
from .view_filter import FilterSet, SortOption, apply_view_filters, sort_properties

__all__ = [
    # Cache
    "TTLCache",
    "CacheEntry",
    "get_geocode_cache",
    "get_preview_cache",
    # Retry
    "with_retry",
    "NETWORK_ERRORS",
    # Address validation
    "AddressValidation",
    "AddressValidator",
    "DebouncedAddressValidator",
    "ValidationStatus",
    "compose_display",
    # Link preview
    "LinkMetadata",
    "MetadataFetcher",
    "fallback_screenshot",
    # View filtering
    "FilterSet",
    "SortOption",
    "apply_view_filters",
    "sort_properties",
]
