"""Address validation against the Photon geocoder, with a debounced async front.

``AddressValidator`` is the synchronous lookup: one address in, one verdict
out, never raising. ``DebouncedAddressValidator`` wraps it for interactive
editing: only the last edit after a quiet period triggers a lookup, and a
lookup that completes after a newer edit is discarded.
"""
from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from core.config import Settings, get_settings
from core.exceptions import ExternalServiceError, GeocodeError, RateLimitError, ServiceUnavailableError
from core.logging_config import external_call, get_logger
from services.cache import TTLCache, get_geocode_cache
from services.retry import with_retry

LOGGER = get_logger(__name__)

# Composed display strings this short are not a usable address
MIN_DISPLAY_LENGTH = 4


class ValidationStatus(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class AddressValidation:
    """Verdict for one address string."""

    status: ValidationStatus
    address: str = ""
    normalized_display: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    source: str = "geocoder"

    @classmethod
    def idle(cls, address: str = "") -> "AddressValidation":
        return cls(ValidationStatus.IDLE, address, source="local")

    @classmethod
    def validating(cls, address: str) -> "AddressValidation":
        return cls(ValidationStatus.VALIDATING, address, source="local")

    @classmethod
    def invalid(cls, address: str, source: str = "geocoder") -> "AddressValidation":
        return cls(ValidationStatus.INVALID, address, source=source)

    @property
    def is_pending(self) -> bool:
        return self.status == ValidationStatus.VALIDATING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "address": self.address,
            "normalized_display": self.normalized_display,
            "lat": self.lat,
            "lng": self.lng,
            "source": self.source,
        }


def compose_display(properties: Dict[str, Any]) -> str:
    """
    Build the normalized display string for a Photon feature.

    Parts, in order: street (or name), house number, district (or city),
    state (or country). Empty parts are skipped.
    """
    parts = [
        properties.get("street") or properties.get("name"),
        properties.get("housenumber"),
        properties.get("district") or properties.get("city"),
        properties.get("state") or properties.get("country"),
    ]
    return ", ".join(str(part).strip() for part in parts if part and str(part).strip())


class AddressValidator:
    """Resolve free-text addresses through the geocoder. Fails closed."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else get_geocode_cache()
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.geocoder_timeout)
        return self._client

    @with_retry()
    def _search(self, query: str) -> Optional[Dict[str, Any]]:
        """Return the first geocoder feature for ``query``, or None."""
        response = self._get_client().get(
            self.settings.geocoder_url,
            params={"q": query, "limit": 1},
        )
        if response.status_code == 429:
            raise RateLimitError("Geocoder rate limit exceeded")
        if response.status_code >= 500:
            raise ServiceUnavailableError(f"Geocoder returned {response.status_code}")
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            raise GeocodeError("Geocoder returned a non-object payload")
        features = data.get("features") or []
        if not features:
            return None
        feature = features[0]
        if not isinstance(feature, dict):
            raise GeocodeError("Geocoder feature is not an object")
        return feature

    def validate(self, address: str) -> AddressValidation:
        """
        Validate ``address`` and return a verdict.

        Input shorter than ADDRESS_MIN_LENGTH after trimming is ``idle`` and
        issues no lookup. Network and parse failures are ``invalid``.
        """
        query = (address or "").strip()
        if len(query) < self.settings.address_min_length:
            return AddressValidation.idle(address or "")

        if not self.settings.is_geocoder_enabled():
            LOGGER.debug("Geocoder disabled, address verdict is invalid")
            return AddressValidation.invalid(query, source="disabled")

        cache_key = query.lower()
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            with external_call(LOGGER, "geocoder", "search", address=query[:50]):
                feature = self._search(query)
        except (ExternalServiceError, httpx.HTTPError, ValueError) as e:
            LOGGER.warning(f"Address lookup failed for {query[:50]!r}: {e}")
            return AddressValidation.invalid(query, source="error")

        result = self._verdict_for(query, feature)
        self.cache.set(cache_key, result)
        return result

    def _verdict_for(self, query: str, feature: Optional[Dict[str, Any]]) -> AddressValidation:
        if feature is None:
            return AddressValidation.invalid(query)

        properties = feature.get("properties") or {}
        display = compose_display(properties if isinstance(properties, dict) else {})
        if len(display) < MIN_DISPLAY_LENGTH:
            return AddressValidation.invalid(query)

        lat = lng = None
        coordinates = (feature.get("geometry") or {}).get("coordinates") or []
        if len(coordinates) >= 2:
            lng, lat = float(coordinates[0]), float(coordinates[1])

        return AddressValidation(
            status=ValidationStatus.VALID,
            address=query,
            normalized_display=display,
            lat=lat,
            lng=lng,
        )

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None


class DebouncedAddressValidator:
    """
    Debounce-and-cancel front for ``AddressValidator``.

    Every ``submit`` bumps a generation counter and cancels the pending
    timer. The lookup runs in a worker thread once the address has been
    quiet for the debounce window; a result whose generation is stale is
    dropped. Must be driven from a running event loop.
    """

    def __init__(
        self,
        validator: AddressValidator,
        delay_seconds: Optional[float] = None,
        on_result: Optional[Callable[[AddressValidation], None]] = None,
    ):
        self.validator = validator
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else validator.settings.address_debounce_seconds
        )
        self.on_result = on_result
        self.verdict = AddressValidation.idle()
        self.lookups_issued = 0
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self.verdict.is_pending

    def submit(self, address: str) -> None:
        self._generation += 1
        self._cancel_task()

        if len((address or "").strip()) < self.validator.settings.address_min_length:
            self.verdict = AddressValidation.idle(address or "")
            return

        self.verdict = AddressValidation.validating(address)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(address, self._generation))

    async def _run(self, address: str, generation: int) -> None:
        await asyncio.sleep(self.delay_seconds)
        self.lookups_issued += 1
        try:
            result = await asyncio.to_thread(self.validator.validate, address)
        except Exception:
            LOGGER.exception("Address validation raised unexpectedly")
            result = AddressValidation.invalid(address.strip(), source="error")

        if generation != self._generation:
            LOGGER.debug(f"Discarding stale address verdict (generation {generation})")
            return

        self.verdict = result
        self._task = None
        if self.on_result is not None:
            self.on_result(result)

    async def wait(self) -> AddressValidation:
        """Wait for the outstanding timer/lookup, if any, and return the verdict."""
        # A newer submit may replace the task while we wait
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self.verdict

    def cancel(self) -> None:
        """Stop the pending timer. An in-flight lookup result is dropped."""
        self._generation += 1
        self._cancel_task()
        if self.verdict.is_pending:
            self.verdict = AddressValidation.idle(self.verdict.address)

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


__all__ = [
    "ValidationStatus",
    "AddressValidation",
    "AddressValidator",
    "DebouncedAddressValidator",
    "compose_display",
]
