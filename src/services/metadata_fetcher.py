"""Listing preview (title + screenshot) with a deterministic fallback."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from core.config import Settings, get_settings
from core.exceptions import ExternalServiceError, LinkPreviewError, RateLimitError, ServiceUnavailableError
from core.logging_config import external_call, get_logger
from services.cache import TTLCache, get_preview_cache
from services.retry import with_retry

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class LinkMetadata:
    """Best-effort preview of a listing URL."""

    url: str
    title: str
    screenshot: str
    degraded: bool = False
    source: str = "preview"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "screenshot": self.screenshot,
            "degraded": self.degraded,
            "source": self.source,
        }


def fallback_screenshot(url: str, settings: Optional[Settings] = None) -> str:
    """
    Screenshot URL derived purely from ``url``.

    No network access; the same input always yields the same output.
    """
    settings = settings or get_settings()
    return (
        f"https://{settings.mshots_host}/mshots/v1/"
        f"{quote(url, safe='')}?w={settings.mshots_width}"
    )


def _nested_url(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if isinstance(value, dict) and isinstance(value.get("url"), str) and value["url"]:
        return value["url"]
    return None


class MetadataFetcher:
    """Fetch title and screenshot for a listing. ``fetch`` never raises."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else get_preview_cache()
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.preview_timeout)
        return self._client

    def fallback(self, url: str) -> LinkMetadata:
        return LinkMetadata(
            url=url,
            title="",
            screenshot=fallback_screenshot(url, self.settings),
            degraded=True,
            source="fallback",
        )

    @with_retry()
    def _preview(self, url: str) -> Dict[str, Any]:
        response = self._get_client().get(
            self.settings.preview_api_url,
            params={"url": url, "screenshot": "true"},
        )
        if response.status_code == 429:
            raise RateLimitError("Preview API rate limit exceeded")
        if response.status_code >= 500:
            raise ServiceUnavailableError(f"Preview API returned {response.status_code}")
        response.raise_for_status()

        body = response.json()
        if not isinstance(body, dict) or body.get("status") != "success":
            status = body.get("status") if isinstance(body, dict) else None
            raise LinkPreviewError(f"Preview API returned status {status!r}")
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def fetch(self, url: str) -> LinkMetadata:
        """Return the preview for ``url``, or the fallback on any failure."""
        if not self.settings.is_link_preview_enabled():
            return self.fallback(url)

        cached = self.cache.get(url)
        if cached is not None:
            return cached

        try:
            with external_call(LOGGER, "link_preview", "preview", url=url[:80]):
                data = self._preview(url)
        except (ExternalServiceError, httpx.HTTPError, ValueError) as e:
            LOGGER.warning(f"Link preview failed for {url[:80]}: {e}")
            return self.fallback(url)

        title = data.get("title") if isinstance(data.get("title"), str) else ""
        screenshot = (
            _nested_url(data, "screenshot")
            or _nested_url(data, "image")
            or fallback_screenshot(url, self.settings)
        )
        result = LinkMetadata(url=url, title=title.strip(), screenshot=screenshot)
        self.cache.set(url, result)
        return result

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None


__all__ = ["LinkMetadata", "MetadataFetcher", "fallback_screenshot"]
