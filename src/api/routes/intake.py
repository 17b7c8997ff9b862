"""Intake routes - link inbox and the property intake sessions built from it."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.deps import get_actor, get_db, get_intake_store, get_readonly_db
from core.exceptions import DatabaseError
from core.logging_config import get_logger
from domain.access import Actor
from domain.intake import IntakeMode, IntakeSessionStore, LinkInbox
from domain.properties import PropertyService

router = APIRouter()
LOGGER = get_logger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================


class LinksCreate(BaseModel):
    """Pasted text; every http(s) URL in it becomes a pending link."""

    text: str = Field(..., min_length=1)
    folder_id: Optional[str] = None


class SessionOpen(BaseModel):
    """Open an intake session for a pending link or for an existing property."""

    link_id: Optional[str] = None
    property_id: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_target(self) -> "SessionOpen":
        if bool(self.link_id) == bool(self.property_id):
            raise ValueError("Provide exactly one of link_id or property_id")
        return self


class ModeSelect(BaseModel):
    mode: IntakeMode = IntakeMode.AI


class CommitRequest(BaseModel):
    confirm_invalid_address: bool = False
    active_folder_id: Optional[str] = None


def _links_payload(db: Session, actor: Actor) -> List[Dict[str, Any]]:
    return [link.to_dict() for link in LinkInbox(db, actor).list_links()]


# =============================================================================
# Link inbox
# =============================================================================


@router.get("/links")
def list_links(
    folder_id: Optional[str] = Query(None),
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> List[Dict[str, Any]]:
    return [link.to_dict() for link in LinkInbox(db, actor).list_links(folder_id)]


@router.post("/links", status_code=201)
def enqueue_links(
    body: LinksCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    links = LinkInbox(db, actor).enqueue(body.text, folder_id=body.folder_id)
    return {"queued": [link.to_dict() for link in links], "links": _links_payload(db, actor)}


@router.delete("/links/{link_id}")
def discard_link(
    link_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    LinkInbox(db, actor).discard(link_id)
    return {"deleted": link_id, "links": _links_payload(db, actor)}


# =============================================================================
# Intake sessions
# =============================================================================


@router.post("/sessions", status_code=201)
def open_session(
    body: SessionOpen,
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> Dict[str, Any]:
    if body.link_id:
        session = store.open_for_link(LinkInbox(db, actor).get(body.link_id))
    else:
        prop = PropertyService(db, actor).get_property(body.property_id, write=True)
        session = store.open_for_property(prop, actor.user_id)
    return session.to_dict()


@router.get("/sessions")
async def list_sessions(
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> List[Dict[str, Any]]:
    return [session.to_dict() for session in store.list_for_user(actor.user_id)]


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> Dict[str, Any]:
    return store.get(session_id, actor.user_id).to_dict()


@router.post("/sessions/{session_id}/select")
async def select_mode(
    session_id: str,
    body: ModeSelect,
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> Dict[str, Any]:
    """Run AI extraction (or skip it for manual mode) and move to Verify."""
    session = store.get(session_id, actor.user_id)
    await session.select(body.mode)
    return session.to_dict()


@router.patch("/sessions/{session_id}")
async def edit_draft(
    session_id: str,
    fields: Dict[str, Any],
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> Dict[str, Any]:
    session = store.get(session_id, actor.user_id)
    session.edit(**fields)
    return session.to_dict()


@router.post("/sessions/{session_id}/commit")
def commit_session(
    session_id: str,
    body: CommitRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> Dict[str, Any]:
    """Persist the draft. The session is only closed once the transaction has committed."""
    session = store.get(session_id, actor.user_id)
    prop = session.commit(
        PropertyService(db, actor),
        LinkInbox(db, actor),
        confirm_invalid_address=body.confirm_invalid_address,
        active_folder_id=body.active_folder_id,
    )
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        session.reopen()
        LOGGER.error(f"Intake commit {session_id} failed at the database: {e}")
        raise DatabaseError(f"Could not save the property: {e}") from e

    payload = {
        "session": session.to_dict(),
        "property": prop.to_dict(),
        "properties": [p.to_dict() for p in PropertyService(db, actor).list_properties()],
        "links": _links_payload(db, actor),
    }
    store.close(session_id, actor.user_id)
    return payload


@router.delete("/sessions/{session_id}")
async def abandon_session(
    session_id: str,
    actor: Actor = Depends(get_actor),
    store: IntakeSessionStore = Depends(get_intake_store),
) -> Dict[str, Any]:
    """Abandon the draft. The pending link stays in the inbox."""
    return store.close(session_id, actor.user_id).to_dict()
