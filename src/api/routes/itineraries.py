"""Shared itinerary routes - owner management plus the public client view."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.deps import get_actor, get_db, get_readonly_db
from domain.access import Actor
from domain.itineraries import ItineraryService

router = APIRouter()
public_router = APIRouter()


class ItinerarySettings(BaseModel):
    show_prices: bool = True
    show_notes: bool = False
    show_checklist: bool = False


class ItineraryCreate(BaseModel):
    folder_id: str
    settings: Optional[ItinerarySettings] = None


class ActiveToggle(BaseModel):
    is_active: bool


class ClientFeedback(BaseModel):
    feedback: str


@router.get("")
def list_itineraries(
    folder_id: str,
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> List[Dict[str, Any]]:
    return [i.to_dict() for i in ItineraryService(db, actor).list_itineraries(folder_id)]


@router.post("", status_code=201)
def create_itinerary(
    body: ItineraryCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    service = ItineraryService(db, actor)
    settings = body.settings.model_dump() if body.settings else None
    itinerary = service.create_itinerary(body.folder_id, settings)
    return {
        "itinerary": itinerary.to_dict(),
        "itineraries": [i.to_dict() for i in service.list_itineraries(body.folder_id)],
    }


@router.put("/{itinerary_id}/active")
def set_active(
    itinerary_id: str,
    body: ActiveToggle,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    return ItineraryService(db, actor).set_active(itinerary_id, body.is_active).to_dict()


# -----------------------------------------------------------------------------
# Public (no caller identity)
# -----------------------------------------------------------------------------


@public_router.get("/{itinerary_id}")
def public_itinerary(
    itinerary_id: str,
    db: Session = Depends(get_readonly_db),
) -> Dict[str, Any]:
    return ItineraryService(db).public_view(itinerary_id)


@public_router.post("/{itinerary_id}/visits/{visit_id}/feedback")
def leave_feedback(
    itinerary_id: str,
    visit_id: str,
    body: ClientFeedback,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    visit = ItineraryService(db).leave_feedback(itinerary_id, visit_id, body.feedback)
    return {"visit_id": visit.id, "client_feedback": visit.client_feedback}
