"""Visit routes."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_actor, get_db, get_readonly_db
from domain.access import Actor
from domain.visits import VisitService

router = APIRouter()


class VisitCreate(BaseModel):
    property_id: str
    date: dt.date
    time: str = Field("10:00", pattern=r"^\d{1,2}:\d{2}")
    contact_name: str = ""
    contact_phone: str = ""
    notes: str = ""
    checklist: Optional[List[Any]] = Field(None, description="Defaults to the standard inspection checklist")


class VisitUpdate(BaseModel):
    date: Optional[dt.date] = None
    time: Optional[str] = Field(None, pattern=r"^\d{1,2}:\d{2}")
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    checklist: Optional[List[Any]] = None
    photos: Optional[List[str]] = None


class FeedbackBody(BaseModel):
    feedback: str


def _visits_payload(db: Session, actor: Actor) -> List[Dict[str, Any]]:
    return [v.to_dict() for v in VisitService(db, actor).list_visits()]


@router.get("")
def list_visits(
    folder_id: Optional[str] = Query(None),
    property_id: Optional[str] = Query(None),
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> List[Dict[str, Any]]:
    visits = VisitService(db, actor).list_visits(folder_id=folder_id, property_id=property_id)
    return [v.to_dict() for v in visits]


@router.post("", status_code=201)
def schedule_visit(
    body: VisitCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    visit = VisitService(db, actor).schedule_visit(
        body.property_id,
        body.date,
        body.time,
        contact_name=body.contact_name,
        contact_phone=body.contact_phone,
        notes=body.notes,
        checklist=body.checklist,
    )
    return {"visit": visit.to_dict(), "visits": _visits_payload(db, actor)}


@router.patch("/{visit_id}")
def update_visit(
    visit_id: str,
    body: VisitUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    visit = VisitService(db, actor).update_visit(visit_id, body.model_dump(exclude_unset=True))
    return {"visit": visit.to_dict(), "visits": _visits_payload(db, actor)}


@router.post("/{visit_id}/checklist/{index}")
def toggle_checklist_item(
    visit_id: str,
    index: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    return VisitService(db, actor).toggle_checklist_item(visit_id, index).to_dict()


@router.post("/{visit_id}/complete")
def complete_visit(
    visit_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """Complete the visit and mark its property Visited."""
    visit = VisitService(db, actor).complete_visit(visit_id)
    return {"visit": visit.to_dict(), "visits": _visits_payload(db, actor)}


@router.post("/{visit_id}/cancel")
def cancel_visit(
    visit_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    visit = VisitService(db, actor).cancel_visit(visit_id)
    return {"visit": visit.to_dict(), "visits": _visits_payload(db, actor)}


@router.put("/{visit_id}/feedback")
def record_feedback(
    visit_id: str,
    body: FeedbackBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    return VisitService(db, actor).record_feedback(visit_id, body.feedback).to_dict()


@router.delete("/{visit_id}")
def delete_visit(
    visit_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    VisitService(db, actor).delete_visit(visit_id)
    return {"deleted": visit_id, "visits": _visits_payload(db, actor)}
