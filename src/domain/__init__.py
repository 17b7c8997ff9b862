"""Domain layer for PropBrain business logic.

Services here take a SQLAlchemy session and the calling ``Actor``; the API
and CLI only translate requests into these calls.
"""
from __future__ import annotations

from .access import Actor, FolderAccess
from .folders import FolderService, FolderAggregator, FolderMetrics
from .properties import PropertyService
from .intake import (
    FieldSource,
    IntakeMode,
    IntakeStage,
    IntakeSession,
    IntakeSessionStore,
    LinkInbox,
    PropertyDraft,
    split_links,
)
from .visits import VisitService
from .documents import DocumentService
from .itineraries import ItineraryService
from .reports import PropertyComparison, build_folder_report
from .workspace import load_workspace

__all__ = [
    # Access
    "Actor",
    "FolderAccess",
    # Folders
    "FolderService",
    "FolderAggregator",
    "FolderMetrics",
    # Properties
    "PropertyService",
    # Intake
    "FieldSource",
    "IntakeMode",
    "IntakeStage",
    "IntakeSession",
    "IntakeSessionStore",
    "LinkInbox",
    "PropertyDraft",
    "split_links",
    # Visits, documents, itineraries
    "VisitService",
    "DocumentService",
    "ItineraryService",
    # Reports
    "PropertyComparison",
    "build_folder_report",
    "load_workspace",
]
