"""Property intake - from a pasted listing link to a committed property.

An ``IntakeSession`` walks one link (or one existing property) through
Inbox -> Processing -> Verify -> Committed | Abandoned. It owns the draft
and the debounced address validator for that draft; sessions live in an
``IntakeSessionStore`` scoped to the running application, never in module
globals.

Every draft field remembers where its value came from. A source may only
overwrite a field whose current source does not outrank it, so a late
screenshot never clobbers an AI title and nothing clobbers a user edit.
"""
from __future__ import annotations

import asyncio
import enum
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import flush_or_raise
from core.exceptions import (
    AddressConfirmationRequiredError,
    AddressRequiredError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    ValidationPendingError,
)
from core.logging_config import get_context_logger, get_logger
from core.models import PendingLink, Property, PropertyStatus
from core.utils import host_of, new_id
from domain.access import Actor, FolderAccess
from domain.properties import EDITABLE_FIELDS, PropertyService
from llm.listing_extractor import ExtractionResult, ListingAnalysis, ListingExtractor
from services.address_validator import (
    AddressValidation,
    AddressValidator,
    DebouncedAddressValidator,
    ValidationStatus,
)
from services.metadata_fetcher import LinkMetadata, MetadataFetcher, fallback_screenshot

LOGGER = get_logger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
TRAILING_PUNCTUATION = ".,;:!?)]}"


class FieldSource(enum.IntEnum):
    """Provenance of a draft value, in ascending precedence."""

    DEFAULT = 0
    METADATA = 1
    AI = 2
    STORED = 3
    USER = 4


class IntakeStage(str, enum.Enum):
    INBOX = "inbox"
    PROCESSING = "processing"
    VERIFY = "verify"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


class IntakeMode(str, enum.Enum):
    AI = "ai"
    MANUAL = "manual"


TERMINAL_STAGES = (IntakeStage.COMMITTED, IntakeStage.ABANDONED)

DRAFT_DEFAULTS: Dict[str, Any] = {
    "title": "",
    "url": "",
    "address": "",
    "exact_address": "",
    "price": 0,
    "fees": 0,
    "environments": 0,
    "rooms": 0,
    "bathrooms": 0,
    "toilets": 0,
    "parking": 0,
    "sqft": 0,
    "covered_sqft": 0,
    "uncovered_sqft": 0,
    "age": 0,
    "floor": "",
    "status": PropertyStatus.WISHLIST.value,
    "rating": 3,
    "notes": "",
    "images": [],
}


def placeholder_title(url: str) -> str:
    host = host_of(url)
    return f"Listing on {host}" if host else "New listing"


@dataclass
class PropertyDraft:
    """Editable property fields plus per-field provenance."""

    values: Dict[str, Any] = field(default_factory=lambda: {**DRAFT_DEFAULTS, "images": []})
    sources: Dict[str, FieldSource] = field(
        default_factory=lambda: {key: FieldSource.DEFAULT for key in DRAFT_DEFAULTS}
    )
    image_loading: bool = False

    @classmethod
    def for_url(cls, url: str, cover: str) -> "PropertyDraft":
        draft = cls()
        draft.values.update({"url": url, "title": placeholder_title(url), "images": [cover]})
        draft.image_loading = True
        return draft

    @classmethod
    def from_property(cls, prop: Property) -> "PropertyDraft":
        draft = cls()
        for key in DRAFT_DEFAULTS:
            value = getattr(prop, key)
            if value is None:
                value = DRAFT_DEFAULTS[key]
            draft.values[key] = list(value) if key == "images" else value
            draft.sources[key] = FieldSource.STORED
        return draft

    def get(self, key: str) -> Any:
        return self.values[key]

    def offer(self, key: str, value: Any, source: FieldSource) -> bool:
        """Set ``key`` unless its current value comes from a higher source."""
        if key not in self.values:
            raise ValidationError(f"Unknown draft field: {key}")
        if self.sources[key] > source:
            return False
        self.values[key] = value
        self.sources[key] = source
        return True

    def apply(self, values: Dict[str, Any], source: FieldSource) -> List[str]:
        return [key for key, value in values.items() if self.offer(key, value, source)]

    def to_fields(self) -> Dict[str, Any]:
        return {key: value for key, value in self.values.items() if key in EDITABLE_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": dict(self.values),
            "provenance": {key: source.name.lower() for key, source in self.sources.items()},
            "image_loading": self.image_loading,
        }


class IntakeSession:
    """State machine for turning one link (or one stored property) into a property."""

    def __init__(
        self,
        user_id: str,
        fetcher: MetadataFetcher,
        extractor: ListingExtractor,
        validator: DebouncedAddressValidator,
        url: str = "",
        link_id: Optional[str] = None,
        folder_id: Optional[str] = None,
    ) -> None:
        self.id = new_id()
        self.user_id = user_id
        self.fetcher = fetcher
        self.extractor = extractor
        self.validator = validator
        self.url = url
        self.link_id = link_id
        self.folder_id = folder_id
        self.property_id: Optional[str] = None

        self.stage = IntakeStage.INBOX
        self.mode: Optional[IntakeMode] = None
        self.degraded = False
        self.draft: Optional[PropertyDraft] = None
        self.analysis: Optional[ListingAnalysis] = None
        self.metadata: Optional[LinkMetadata] = None
        self._metadata_task: Optional[asyncio.Task] = None
        self.log = get_context_logger(__name__, user_id=user_id, session_id=self.id)

    @classmethod
    def for_link(
        cls,
        link: PendingLink,
        fetcher: MetadataFetcher,
        extractor: ListingExtractor,
        validator: DebouncedAddressValidator,
    ) -> "IntakeSession":
        return cls(
            user_id=link.user_id,
            fetcher=fetcher,
            extractor=extractor,
            validator=validator,
            url=link.url,
            link_id=link.id,
            folder_id=link.folder_id,
        )

    @classmethod
    def for_property(
        cls,
        prop: Property,
        user_id: str,
        fetcher: MetadataFetcher,
        extractor: ListingExtractor,
        validator: DebouncedAddressValidator,
    ) -> "IntakeSession":
        """Edit-existing path: starts in Verify and commits as an update."""
        session = cls(
            user_id=user_id,
            fetcher=fetcher,
            extractor=extractor,
            validator=validator,
            url=prop.url or "",
            folder_id=prop.folder_id,
        )
        session.property_id = prop.id
        session.draft = PropertyDraft.from_property(prop)
        session.stage = IntakeStage.VERIFY
        session.mode = IntakeMode.MANUAL
        return session

    @property
    def is_edit(self) -> bool:
        return self.link_id is None and self.property_id is not None

    @property
    def verdict(self) -> AddressValidation:
        return self.validator.verdict

    def _require_stage(self, *stages: IntakeStage) -> None:
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise InvalidTransitionError(f"Intake session is {self.stage.value}; expected {allowed}")

    # -------------------------------------------------------------------------
    # Inbox -> Processing -> Verify
    # -------------------------------------------------------------------------

    async def select(self, mode: IntakeMode | str) -> PropertyDraft:
        """
        Start processing the link.

        AI failures fall back to manual mode without raising; the session
        always reaches Verify. The preview fetch keeps running in the
        background and fills the draft when it lands.
        """
        self._require_stage(IntakeStage.INBOX)
        self.mode = IntakeMode(mode)
        self.stage = IntakeStage.PROCESSING
        self.draft = PropertyDraft.for_url(self.url, fallback_screenshot(self.url, self.fetcher.settings))
        self._metadata_task = asyncio.get_running_loop().create_task(self._load_metadata())

        if self.mode == IntakeMode.AI:
            result = await self._extract()
            if result.ok and result.listing is not None:
                seeded = {key: value for key, value in result.listing.draft_fields().items() if value}
                self.draft.apply(seeded, FieldSource.AI)
                self.analysis = result.listing.analysis
            else:
                self.degraded = True
                self.mode = IntakeMode.MANUAL
                self.log.info(f"AI extraction unavailable, continuing manually: {result.error}")

        if self.stage != IntakeStage.PROCESSING:
            # Abandoned while the extractor was running
            return self.draft

        self.stage = IntakeStage.VERIFY
        exact_address = self.draft.get("exact_address")
        if exact_address:
            self.validator.submit(exact_address)
        return self.draft

    async def _extract(self) -> ExtractionResult:
        try:
            return await asyncio.to_thread(self.extractor.extract, self.url)
        except Exception as e:
            self.log.exception("Listing extractor raised")
            return ExtractionResult(ok=False, error=str(e))

    async def _load_metadata(self) -> None:
        try:
            metadata = await asyncio.to_thread(self.fetcher.fetch, self.url)
        except Exception:
            self.log.exception("Metadata fetcher raised")
            metadata = self.fetcher.fallback(self.url)

        if self.stage in TERMINAL_STAGES or self.draft is None:
            return

        self.metadata = metadata
        if metadata.title:
            self.draft.offer("title", metadata.title, FieldSource.METADATA)
        if metadata.screenshot:
            self.draft.offer("images", [metadata.screenshot], FieldSource.METADATA)
        self.draft.image_loading = False

    async def wait_for_metadata(self) -> None:
        if self._metadata_task is not None and not self._metadata_task.done():
            await asyncio.wait({self._metadata_task})

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    def edit(self, **fields: Any) -> PropertyDraft:
        """
        Apply user edits. Editing ``exact_address`` restarts the debounced
        address validation.
        """
        self._require_stage(IntakeStage.VERIFY)
        target_folder = fields.pop("folder_id", None)
        unknown = set(fields) - set(self.draft.values)
        if unknown:
            raise ValidationError(f"Unknown draft fields: {sorted(unknown)}")

        if target_folder:
            self.folder_id = target_folder
        self.draft.apply(fields, FieldSource.USER)
        if "exact_address" in fields:
            self.validator.submit(fields["exact_address"] or "")
        return self.draft

    def commit(
        self,
        properties: PropertyService,
        inbox: "LinkInbox",
        confirm_invalid_address: bool = False,
        active_folder_id: Optional[str] = None,
    ) -> Property:
        """
        Persist the draft.

        Raises:
            AddressRequiredError: ``exact_address`` is blank.
            ValidationPendingError: Address validation has not resolved.
            AddressConfirmationRequiredError: Address judged invalid and not confirmed.
        """
        self._require_stage(IntakeStage.VERIFY)

        exact_address = str(self.draft.get("exact_address") or "").strip()
        if not exact_address:
            raise AddressRequiredError("An exact address is required")

        verdict = self.verdict
        if verdict.is_pending:
            raise ValidationPendingError("Address validation is still running")
        if verdict.status == ValidationStatus.INVALID and not confirm_invalid_address:
            raise AddressConfirmationRequiredError(
                "The address could not be verified. Confirm to save it anyway."
            )

        fields = self.draft.to_fields()
        if self.is_edit:
            prop = properties.update_property(self.property_id, fields)
        else:
            prop = properties.create_property(
                fields,
                folder_id=self.folder_id,
                active_folder_id=active_folder_id,
            )
            if self.link_id:
                inbox.consume(self.link_id)

        self.validator.cancel()
        self.property_id = prop.id
        self.stage = IntakeStage.COMMITTED
        self.log.info(f"Committed property {prop.id} ({'update' if self.is_edit else 'create'})")
        return prop

    def reopen(self) -> None:
        """Return to Verify after the transaction holding the commit was rolled back."""
        self._require_stage(IntakeStage.COMMITTED)
        if self.link_id is not None:
            self.property_id = None
        self.stage = IntakeStage.VERIFY
        self.log.warning("Commit rolled back, draft reopened for editing")

    def abandon(self) -> None:
        """Discard the draft. The pending link stays in the inbox."""
        self._require_stage(IntakeStage.INBOX, IntakeStage.PROCESSING, IntakeStage.VERIFY)
        self.validator.cancel()
        if self._metadata_task is not None and not self._metadata_task.done():
            self._metadata_task.cancel()
        self.stage = IntakeStage.ABANDONED
        self.log.info("Intake session abandoned")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "stage": self.stage.value,
            "mode": self.mode.value if self.mode else None,
            "degraded": self.degraded,
            "url": self.url,
            "link_id": self.link_id,
            "property_id": self.property_id,
            "folder_id": self.folder_id,
            "draft": self.draft.to_dict() if self.draft else None,
            "address_validation": self.verdict.to_dict(),
            "analysis": {
                "pros": self.analysis.pros,
                "cons": self.analysis.cons,
                "strategy": self.analysis.strategy,
            } if self.analysis else None,
        }


class IntakeSessionStore:
    """
    Registry of live intake sessions, keyed by session id and scoped per user.

    One store is created per application and handed to routes through
    dependency injection.
    """

    def __init__(
        self,
        fetcher: Optional[MetadataFetcher] = None,
        extractor: Optional[ListingExtractor] = None,
        address_validator: Optional[AddressValidator] = None,
        debounce_seconds: Optional[float] = None,
    ) -> None:
        self.fetcher = fetcher or MetadataFetcher()
        self.extractor = extractor or ListingExtractor()
        self.address_validator = address_validator or AddressValidator()
        self.debounce_seconds = debounce_seconds
        self._sessions: Dict[str, IntakeSession] = {}
        self._lock = threading.Lock()

    def _new_validator(self) -> DebouncedAddressValidator:
        return DebouncedAddressValidator(self.address_validator, delay_seconds=self.debounce_seconds)

    def _register(self, session: IntakeSession) -> IntakeSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def open_for_link(self, link: PendingLink) -> IntakeSession:
        return self._register(
            IntakeSession.for_link(link, self.fetcher, self.extractor, self._new_validator())
        )

    def open_for_property(self, prop: Property, user_id: str) -> IntakeSession:
        return self._register(
            IntakeSession.for_property(prop, user_id, self.fetcher, self.extractor, self._new_validator())
        )

    def get(self, session_id: str, user_id: str) -> IntakeSession:
        session = self._sessions.get(session_id)
        if session is None or session.user_id != user_id:
            raise NotFoundError(f"Intake session {session_id} not found")
        return session

    def list_for_user(self, user_id: str) -> List[IntakeSession]:
        return [s for s in self._sessions.values() if s.user_id == user_id]

    def close(self, session_id: str, user_id: str) -> IntakeSession:
        """Remove a session, abandoning it first if it is still live."""
        session = self.get(session_id, user_id)
        if session.stage not in TERMINAL_STAGES:
            session.abandon()
        with self._lock:
            self._sessions.pop(session_id, None)
        return session

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            if session.stage not in TERMINAL_STAGES:
                session.abandon()

    def __len__(self) -> int:
        return len(self._sessions)


def split_links(text: str) -> List[str]:
    """Pull http(s) URLs out of pasted text, in order. Duplicates are kept."""
    links = []
    for match in URL_PATTERN.findall(text or ""):
        url = match.rstrip(TRAILING_PUNCTUATION)
        if url:
            links.append(url)
    return links


class LinkInbox:
    """Pending listing links for one user."""

    def __init__(self, session: Session, actor: Actor) -> None:
        self.session = session
        self.actor = actor
        self.access = FolderAccess(session, actor)

    def enqueue(self, text_or_urls: str | Iterable[str], folder_id: Optional[str] = None) -> List[PendingLink]:
        if isinstance(text_or_urls, str):
            urls = split_links(text_or_urls)
        else:
            urls = [url for item in text_or_urls for url in split_links(item)]
        if not urls:
            raise ValidationError("No http(s) links found")

        if folder_id:
            self.access.get(folder_id, write=True)

        links = [PendingLink(url=url, folder_id=folder_id, user_id=self.actor.user_id) for url in urls]
        self.session.add_all(links)
        flush_or_raise(self.session, "Queue links")
        LOGGER.info(f"Queued {len(links)} link(s) for {self.actor.user_id}")
        return links

    def list_links(self, folder_id: Optional[str] = None) -> List[PendingLink]:
        """Oldest first. Read failures degrade to []."""
        try:
            query = self.session.query(PendingLink).filter(PendingLink.user_id == self.actor.user_id)
            if folder_id:
                query = query.filter(PendingLink.folder_id == folder_id)
            return query.order_by(PendingLink.created_at).all()
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to load pending links: {e}")
            return []

    def get(self, link_id: str) -> PendingLink:
        link = self.session.get(PendingLink, link_id)
        if link is None or link.user_id != self.actor.user_id:
            raise NotFoundError(f"Pending link {link_id} not found")
        return link

    def discard(self, link_id: str) -> None:
        self.session.delete(self.get(link_id))
        flush_or_raise(self.session, "Discard link")

    def consume(self, link_id: str) -> None:
        """Remove a link that has become a property."""
        self.session.delete(self.get(link_id))
        flush_or_raise(self.session, "Consume link")


__all__ = [
    "FieldSource",
    "IntakeMode",
    "IntakeStage",
    "PropertyDraft",
    "IntakeSession",
    "IntakeSessionStore",
    "LinkInbox",
    "split_links",
    "placeholder_title",
]
