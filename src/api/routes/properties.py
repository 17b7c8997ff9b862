"""Property routes - filtered listing, edits, status, renovations."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_actor, get_db, get_readonly_db
from core.logging_config import get_logger
from core.models import PropertyStatus
from domain.access import Actor
from domain.properties import PropertyService
from llm.renovation_advisor import RenovationAdvisor
from services.view_filter import FilterSet, SortOption, apply_view_filters

router = APIRouter()
LOGGER = get_logger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================


class RenovationLine(BaseModel):
    category: str = ""
    description: str = ""
    estimated_cost: float = Field(0, ge=0)


class PropertyCreate(BaseModel):
    """Request body for creating a property directly, without an intake session."""

    folder_id: Optional[str] = Field(None, description="Target folder; defaults to the active folder")
    active_folder_id: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)
    renovations: List[RenovationLine] = Field(default_factory=list)


class StatusUpdate(BaseModel):
    status: PropertyStatus


class RenovationsUpdate(BaseModel):
    items: List[RenovationLine]


def _properties_payload(db: Session, actor: Actor, folder_id: Optional[str] = None) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in PropertyService(db, actor).list_properties(folder_id)]


# =============================================================================
# Routes
# =============================================================================


@router.get("")
def list_properties(
    request: Request,
    folder_id: Optional[str] = Query(None, description="Active folder"),
    q: str = Query("", description="Free-text search over title, address and notes"),
    sort: SortOption = Query(SortOption.NEWEST),
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """
    Dashboard listing. Structured filters come as query parameters
    (``max_price``, ``min_rooms``, ``status``, ...); blanks are ignored.
    """
    filters = FilterSet.from_query_params(request.query_params)
    records = PropertyService(db, actor).list_properties()
    visible = apply_view_filters(
        records,
        query=q,
        filters=filters,
        sort=sort,
        active_folder_id=folder_id,
    )
    return {
        "properties": [p.to_dict() for p in visible],
        "total": len(visible),
        "active_filters": filters.active_filter_count(),
    }


@router.post("", status_code=201)
def create_property(
    body: PropertyCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    service = PropertyService(db, actor)
    prop = service.create_property(
        body.fields,
        folder_id=body.folder_id,
        active_folder_id=body.active_folder_id,
        renovations=[line.model_dump() for line in body.renovations],
    )
    return {"property": prop.to_dict(), "properties": _properties_payload(db, actor)}


@router.get("/{property_id}")
def get_property(
    property_id: str,
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    return PropertyService(db, actor).get_property(property_id).to_dict()


@router.patch("/{property_id}")
def update_property(
    property_id: str,
    fields: Dict[str, Any],
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    prop = PropertyService(db, actor).update_property(property_id, fields)
    return {"property": prop.to_dict(), "properties": _properties_payload(db, actor)}


@router.put("/{property_id}/status")
def update_status(
    property_id: str,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    prop = PropertyService(db, actor).update_status(property_id, body.status.value)
    return {"property": prop.to_dict(), "properties": _properties_payload(db, actor)}


@router.put("/{property_id}/renovations")
def update_renovations(
    property_id: str,
    body: RenovationsUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    prop = PropertyService(db, actor).update_renovations(
        property_id, [line.model_dump() for line in body.items]
    )
    return {"property": prop.to_dict()}


@router.post("/{property_id}/renovations/suggest")
def suggest_renovations(
    property_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """Append AI-suggested renovation lines. An unavailable LLM adds nothing."""
    prop, suggestions = PropertyService(db, actor).suggest_renovations(property_id, RenovationAdvisor())
    return {
        "property": prop.to_dict(),
        "suggestions": [s.to_dict() for s in suggestions],
    }


@router.delete("/{property_id}")
def delete_property(
    property_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    PropertyService(db, actor).delete_property(property_id)
    return {"deleted": property_id, "properties": _properties_payload(db, actor)}
