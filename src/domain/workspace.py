"""Workspace snapshot - everything the caller can see, fetched in one go."""
from __future__ import annotations

from typing import Any, Dict

from sqlalchemy.orm import Session

from domain.access import Actor
from domain.documents import DocumentService
from domain.folders import FolderAggregator, FolderService
from domain.intake import LinkInbox
from domain.properties import PropertyService
from domain.visits import VisitService


def load_workspace(session: Session, actor: Actor) -> Dict[str, Any]:
    """
    Full re-fetch of folders (with metrics), properties, visits, documents
    and the caller's pending links.
    """
    folders = FolderService(session, actor).list_folders()
    return {
        "folders": FolderAggregator(session).summarize_all(folders),
        "properties": [p.to_dict() for p in PropertyService(session, actor).list_properties()],
        "visits": [v.to_dict() for v in VisitService(session, actor).list_visits()],
        "documents": [d.to_dict() for d in DocumentService(session, actor).list_documents()],
        "pending_links": [link.to_dict() for link in LinkInbox(session, actor).list_links()],
    }


__all__ = ["load_workspace"]
