"""Pytest configuration and fixtures."""
from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Set test environment before any settings are loaded
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["EXTERNAL_MAX_RETRIES"] = "1"
os.environ["ADDRESS_DEBOUNCE_MS"] = "20"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""

from core.config import Settings
from core.db import Base
from core.models import Folder, Property, UserRole
from core.utils import utcnow
from domain.access import Actor
from llm.listing_extractor import ExtractionResult
from services.address_validator import AddressValidator
from services.cache import TTLCache
from services.metadata_fetcher import LinkMetadata, MetadataFetcher


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="session")
def engine():
    """Create a test database engine."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture(scope="session")
def tables(engine):
    """Create all tables for testing."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine, tables) -> Session:
    """
    Returns a SQLAlchemy session for testing.

    Each test gets a fresh transaction that is rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=connection)
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Callers
# =============================================================================


@pytest.fixture
def buyer() -> Actor:
    return Actor(user_id="user-buyer", email="buyer@example.com", role=UserRole.BUYER)


@pytest.fixture
def architect() -> Actor:
    return Actor(user_id="user-architect", email="architect@example.com", role=UserRole.ARCHITECT)


@pytest.fixture
def contractor() -> Actor:
    return Actor(user_id="user-contractor", email="contractor@example.com", role=UserRole.CONTRACTOR)


# =============================================================================
# Records
# =============================================================================


@pytest.fixture
def make_folder(db_session, buyer) -> Callable[..., Folder]:
    """Factory for folders owned by ``buyer`` unless another owner is given."""
    created: List[Folder] = []

    def factory(name: str = "Centro", owner_id: Optional[str] = None, **fields: Any) -> Folder:
        now = utcnow() + timedelta(seconds=len(created))
        folder = Folder(
            owner_id=owner_id or buyer.user_id,
            name=name,
            created_at=now,
            status_updated_at=now,
            **fields,
        )
        db_session.add(folder)
        db_session.flush()
        created.append(folder)
        return folder

    return factory


@pytest.fixture
def folder(make_folder) -> Folder:
    return make_folder("Centro", budget=500000)


@pytest.fixture
def make_property(db_session, folder, buyer) -> Callable[..., Property]:
    """Factory for properties; each one is created a second after the previous."""
    created: List[Property] = []

    def factory(folder_id: Optional[str] = None, **fields: Any) -> Property:
        values: Dict[str, Any] = {
            "title": f"Piso {len(created) + 1}",
            "address": "Madrid",
            "exact_address": "Calle Mayor 1, Madrid",
            "price": 200000,
            "sqft": 80,
            "rooms": 2,
            "bathrooms": 1,
            "images": [],
        }
        values.update(fields)
        prop = Property(
            folder_id=folder_id or folder.id,
            user_id=buyer.user_id,
            created_at=utcnow() + timedelta(seconds=len(created)),
            **values,
        )
        db_session.add(prop)
        db_session.flush()
        created.append(prop)
        return prop

    return factory


# =============================================================================
# External services
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with every integration switched on and no LLM keys."""
    return Settings(
        DATABASE_URL=SQLALCHEMY_DATABASE_URL,
        ENABLE_GEOCODER=True,
        ENABLE_LINK_PREVIEW=True,
        GEOCODER_URL="https://geocoder.test/api/",
        PREVIEW_API_URL="https://preview.test/",
        ADDRESS_DEBOUNCE_MS=20,
        EXTERNAL_MAX_RETRIES=1,
        OPENAI_API_KEY=None,
        ANTHROPIC_API_KEY=None,
    )


def photon_feature(street: str = "Calle Mayor", housenumber: str = "1", city: str = "Madrid") -> Dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [-3.7074, 40.4156]},
        "properties": {
            "street": street,
            "housenumber": housenumber,
            "city": city,
            "country": "España",
        },
    }


@pytest.fixture
def geocoder_requests() -> List[str]:
    """Queries seen by the fake geocoder, in order."""
    return []


@pytest.fixture
def make_address_validator(test_settings, geocoder_requests) -> Callable[..., AddressValidator]:
    """
    Build an AddressValidator backed by ``httpx.MockTransport``.

    ``responder(query)`` returns an ``httpx.Response``; by default every
    query resolves to one Madrid feature.
    """

    def factory(responder: Optional[Callable[[str], httpx.Response]] = None) -> AddressValidator:
        def handler(request: httpx.Request) -> httpx.Response:
            query = request.url.params.get("q", "")
            geocoder_requests.append(query)
            if responder is not None:
                return responder(query)
            return httpx.Response(200, json={"features": [photon_feature()]})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        return AddressValidator(client=client, settings=test_settings, cache=TTLCache(60))

    return factory


class StubFetcher(MetadataFetcher):
    """Metadata fetcher returning a fixed preview without touching the network."""

    def __init__(self, settings: Settings, title: str = "Piso luminoso en Chamberí", screenshot: str = "https://shots.test/1.png"):
        super().__init__(client=None, settings=settings, cache=TTLCache(60))
        self.title = title
        self.screenshot = screenshot
        self.calls: List[str] = []

    def fetch(self, url: str) -> LinkMetadata:
        self.calls.append(url)
        return LinkMetadata(url=url, title=self.title, screenshot=self.screenshot)


class StubExtractor:
    """Listing extractor returning a canned result."""

    def __init__(self, result: ExtractionResult):
        self.result = result
        self.calls: List[str] = []

    def extract(self, source: str) -> ExtractionResult:
        self.calls.append(source)
        return self.result


@pytest.fixture
def stub_fetcher(test_settings) -> StubFetcher:
    return StubFetcher(test_settings)


@pytest.fixture
def failed_extractor() -> StubExtractor:
    return StubExtractor(ExtractionResult(ok=False, error="LLM not configured"))


@pytest.fixture
def make_extractor() -> Callable[[ExtractionResult], StubExtractor]:
    return StubExtractor
