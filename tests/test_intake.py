"""Tests for the intake flow: inbox, draft provenance, AI fallback and commit gates."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from core.exceptions import (
    AddressConfirmationRequiredError,
    AddressRequiredError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    ValidationPendingError,
)
from core.models import PendingLink, Property
from domain.intake import (
    DRAFT_DEFAULTS,
    FieldSource,
    IntakeMode,
    IntakeSessionStore,
    IntakeStage,
    LinkInbox,
    PropertyDraft,
    placeholder_title,
    split_links,
)
from domain.properties import PropertyService
from llm.listing_extractor import ExtractionResult, parse_listing_payload
from services.address_validator import ValidationStatus

LISTING_URL = "https://www.idealista.com/inmueble/12345/"

AI_PAYLOAD = {
    "title": "Ático con terraza",
    "price": "320000",
    "rooms": 3,
    "bathrooms": 2,
    "location": "Chamberí, Madrid",
    "exactAddress": "Calle Mayor 1, Madrid",
    "sqft": 95,
    "dealScore": 80,
    "analysis": {"pros": ["Luz"], "cons": ["Sin ascensor"], "strategy": "Negociar precio"},
}


@pytest.fixture
def ai_extractor(make_extractor):
    return make_extractor(ExtractionResult(ok=True, listing=parse_listing_payload(AI_PAYLOAD)))


@pytest.fixture
def make_store(stub_fetcher, failed_extractor, make_address_validator):
    def factory(extractor=None, responder=None):
        return IntakeSessionStore(
            fetcher=stub_fetcher,
            extractor=extractor or failed_extractor,
            address_validator=make_address_validator(responder),
            debounce_seconds=0.01,
        )

    return factory


@pytest.fixture
def link(db_session, buyer, folder):
    return LinkInbox(db_session, buyer).enqueue(LISTING_URL, folder_id=folder.id)[0]


class TestSplitLinks:
    def test_extracts_in_order_and_strips_punctuation(self):
        text = "Mira esto: https://a.test/1, y https://b.test/2). Fin"
        assert split_links(text) == ["https://a.test/1", "https://b.test/2"]

    def test_keeps_duplicates(self):
        assert split_links("http://a.test http://a.test") == ["http://a.test", "http://a.test"]

    def test_no_links(self):
        assert split_links("nothing here") == []
        assert split_links("") == []


class TestLinkInbox:
    def test_enqueue_and_list_oldest_first(self, db_session, buyer):
        inbox = LinkInbox(db_session, buyer)
        inbox.enqueue("https://a.test/1 https://a.test/2")

        assert [link.url for link in inbox.list_links()] == ["https://a.test/1", "https://a.test/2"]

    def test_enqueue_without_links(self, db_session, buyer):
        with pytest.raises(ValidationError):
            LinkInbox(db_session, buyer).enqueue("no links")

    def test_enqueue_into_unwritable_folder(self, db_session, contractor, folder):
        with pytest.raises((NotFoundError, PermissionDeniedError)):
            LinkInbox(db_session, contractor).enqueue(LISTING_URL, folder_id=folder.id)

    def test_links_are_private(self, db_session, buyer, architect, link):
        assert LinkInbox(db_session, architect).list_links() == []
        with pytest.raises(NotFoundError):
            LinkInbox(db_session, architect).get(link.id)

    def test_discard(self, db_session, buyer, link):
        inbox = LinkInbox(db_session, buyer)
        inbox.discard(link.id)
        assert inbox.list_links() == []


class TestPropertyDraft:
    def test_for_url_uses_placeholder_and_cover(self):
        draft = PropertyDraft.for_url(LISTING_URL, "https://cover.test/x.png")

        assert draft.get("title") == "Listing on idealista.com"
        assert draft.get("images") == ["https://cover.test/x.png"]
        assert draft.image_loading

    def test_lower_source_cannot_overwrite_higher(self):
        draft = PropertyDraft()
        assert draft.offer("title", "From AI", FieldSource.AI)
        assert not draft.offer("title", "From preview", FieldSource.METADATA)
        assert draft.offer("title", "Typed", FieldSource.USER)
        assert not draft.offer("title", "Late AI", FieldSource.AI)

        assert draft.get("title") == "Typed"
        assert draft.to_dict()["provenance"]["title"] == "user"

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            PropertyDraft().offer("colour", "red", FieldSource.USER)

    def test_placeholder_without_host(self):
        assert placeholder_title("not a url") == "New listing"

    def test_fresh_drafts_do_not_share_images(self):
        first, second = PropertyDraft(), PropertyDraft()
        first.get("images").append("https://cover.test/1.png")

        assert second.get("images") == []
        assert DRAFT_DEFAULTS["images"] == []


class TestSelect:
    def test_ai_mode_seeds_draft_and_keeps_ai_title(self, make_store, ai_extractor, link, stub_fetcher):
        store = make_store(extractor=ai_extractor)
        session = store.open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.AI)
            await session.wait_for_metadata()
            await session.validator.wait()

        asyncio.run(scenario())

        draft = session.draft
        assert session.stage == IntakeStage.VERIFY
        assert session.mode == IntakeMode.AI
        assert not session.degraded
        assert draft.get("title") == "Ático con terraza"
        assert draft.get("price") == 320000
        assert draft.get("rating") == 4
        assert draft.get("notes") == "Negociar precio"
        # The preview lands after the AI and only fills what the AI left empty
        assert draft.get("images") == ["https://shots.test/1.png"]
        assert draft.sources["images"] == FieldSource.METADATA
        assert not draft.image_loading
        assert session.analysis.pros == ["Luz"]
        assert stub_fetcher.calls == [LISTING_URL]
        assert session.verdict.status == ValidationStatus.VALID

    def test_failed_ai_degrades_to_manual(self, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select("ai")
            await session.wait_for_metadata()

        asyncio.run(scenario())

        assert session.stage == IntakeStage.VERIFY
        assert session.mode == IntakeMode.MANUAL
        assert session.degraded
        assert session.draft.get("title") == "Piso luminoso en Chamberí"
        assert session.verdict.status == ValidationStatus.IDLE

    def test_extractor_exception_also_degrades(self, make_store, link):
        class Exploding:
            def extract(self, source):
                raise RuntimeError("boom")

        session = make_store(extractor=Exploding()).open_for_link(link)
        asyncio.run(session.select(IntakeMode.AI))

        assert session.stage == IntakeStage.VERIFY
        assert session.degraded

    def test_manual_mode_skips_extractor(self, make_store, ai_extractor, link):
        session = make_store(extractor=ai_extractor).open_for_link(link)
        asyncio.run(session.select(IntakeMode.MANUAL))

        assert ai_extractor.calls == []
        assert session.draft.get("title") == "Listing on idealista.com"

    def test_select_twice_is_rejected(self, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            await session.select(IntakeMode.MANUAL)

        with pytest.raises(InvalidTransitionError):
            asyncio.run(scenario())


class TestCommit:
    def test_blank_address_blocks(self, db_session, buyer, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.commit(PropertyService(db_session, buyer), LinkInbox(db_session, buyer))

        with pytest.raises(AddressRequiredError):
            asyncio.run(scenario())
        assert session.stage == IntakeStage.VERIFY

    def test_pending_validation_blocks(self, db_session, buyer, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.edit(exact_address="Calle Mayor 1, Madrid")
            assert session.verdict.is_pending
            session.commit(PropertyService(db_session, buyer), LinkInbox(db_session, buyer))

        with pytest.raises(ValidationPendingError):
            asyncio.run(scenario())

    def test_invalid_address_needs_confirmation(self, db_session, buyer, make_store, link):
        store = make_store(responder=lambda q: httpx.Response(200, json={"features": []}))
        session = store.open_for_link(link)
        properties = PropertyService(db_session, buyer)
        inbox = LinkInbox(db_session, buyer)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.edit(exact_address="Calle Inventada 999")
            await session.validator.wait()
            with pytest.raises(AddressConfirmationRequiredError):
                session.commit(properties, inbox)
            return session.commit(properties, inbox, confirm_invalid_address=True)

        prop = asyncio.run(scenario())

        assert prop.exact_address == "Calle Inventada 999"
        assert session.stage == IntakeStage.COMMITTED

    def test_valid_commit_creates_property_and_consumes_link(self, db_session, buyer, folder, make_store, link):
        session = make_store().open_for_link(link)
        inbox = LinkInbox(db_session, buyer)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            await session.wait_for_metadata()
            session.edit(exact_address="Calle Mayor 1, Madrid", price=210000, notes="Segunda visita")
            await session.validator.wait()
            return session.commit(PropertyService(db_session, buyer), inbox)

        prop = asyncio.run(scenario())

        assert prop.folder_id == folder.id
        assert prop.url == LISTING_URL
        assert prop.title == "Piso luminoso en Chamberí"
        assert prop.price == 210000
        assert prop.images == ["https://shots.test/1.png"]
        assert session.property_id == prop.id
        assert db_session.get(PendingLink, link.id) is None

    def test_reopen_after_rolled_back_commit(self, db_session, buyer, folder, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.edit(exact_address="Calle Mayor 1, Madrid")
            await session.validator.wait()
            session.commit(PropertyService(db_session, buyer), LinkInbox(db_session, buyer))

        asyncio.run(scenario())
        session.reopen()

        assert session.stage == IntakeStage.VERIFY
        assert session.property_id is None
        assert session.draft.get("exact_address") == "Calle Mayor 1, Madrid"
        with pytest.raises(InvalidTransitionError):
            session.reopen()

    def test_edit_can_retarget_folder(self, db_session, buyer, make_folder, make_store, link):
        other = make_folder("Otra")
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.edit(folder_id=other.id, exact_address="Calle Mayor 1, Madrid")
            await session.validator.wait()
            return session.commit(PropertyService(db_session, buyer), LinkInbox(db_session, buyer))

        assert asyncio.run(scenario()).folder_id == other.id

    def test_edit_rejects_unknown_fields(self, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.edit(colour="red")

        with pytest.raises(ValidationError):
            asyncio.run(scenario())


class TestEditExisting:
    def test_updates_instead_of_creating(self, db_session, buyer, make_store, make_property):
        prop = make_property(title="Original")
        session = make_store().open_for_property(prop, buyer.user_id)

        assert session.is_edit
        assert session.stage == IntakeStage.VERIFY
        assert session.draft.sources["title"] == FieldSource.STORED

        session.edit(title="Renombrado")
        updated = session.commit(PropertyService(db_session, buyer), LinkInbox(db_session, buyer))

        assert updated.id == prop.id
        assert updated.title == "Renombrado"
        assert db_session.query(Property).count() == 1


class TestAbandonAndStore:
    def test_abandon_keeps_link(self, db_session, buyer, make_store, link):
        store = make_store()
        session = store.open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            store.close(session.id, buyer.user_id)

        asyncio.run(scenario())

        assert session.stage == IntakeStage.ABANDONED
        assert len(store) == 0
        assert [l.id for l in LinkInbox(db_session, buyer).list_links()] == [link.id]

    def test_late_metadata_is_ignored_after_abandon(self, make_store, link):
        session = make_store().open_for_link(link)

        async def scenario():
            await session.select(IntakeMode.MANUAL)
            session.abandon()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert session.metadata is None
        assert session.draft.get("title") == "Listing on idealista.com"

    def test_sessions_are_scoped_per_user(self, buyer, architect, make_store, link):
        store = make_store()
        session = store.open_for_link(link)

        assert store.get(session.id, buyer.user_id) is session
        assert store.list_for_user(architect.user_id) == []
        with pytest.raises(NotFoundError):
            store.get(session.id, architect.user_id)

    def test_close_all_abandons_live_sessions(self, make_store, link):
        store = make_store()
        session = store.open_for_link(link)
        store.close_all()

        assert session.stage == IntakeStage.ABANDONED
        assert len(store) == 0
