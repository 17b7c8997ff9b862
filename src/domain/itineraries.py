"""Shared client itineraries - a public, redacted view of a folder's visits."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from core.db import flush_or_raise
from core.exceptions import NotFoundError, ValidationError
from core.logging_config import get_logger
from core.models import Folder, Property, SharedItinerary, Visit, VisitStatus
from domain.access import Actor, FolderAccess

LOGGER = get_logger(__name__)

DEFAULT_SETTINGS = {"show_prices": True, "show_notes": False, "show_checklist": False}


def _coerce_settings(settings: Optional[Mapping[str, Any]]) -> Dict[str, bool]:
    values = dict(DEFAULT_SETTINGS)
    for key, value in (settings or {}).items():
        if key not in DEFAULT_SETTINGS:
            raise ValidationError(f"Unknown itinerary setting: {key}")
        values[key] = bool(value)
    return values


def property_card(prop: Optional[Property], settings: Mapping[str, bool]) -> Dict[str, Any]:
    """Client-facing property summary. Missing properties get a placeholder card."""
    if prop is None:
        return {"title": "Property no longer available", "address": "", "image": None, "available": False}

    card: Dict[str, Any] = {
        "title": prop.title,
        "address": prop.exact_address or prop.address,
        "image": prop.cover_image,
        "rooms": prop.rooms,
        "bathrooms": prop.bathrooms,
        "sqft": prop.sqft,
        "available": True,
    }
    if settings.get("show_prices"):
        card["price"] = prop.price
        card["fees"] = prop.fees
    if settings.get("show_notes"):
        card["notes"] = prop.notes
    return card


class ItineraryService:
    """Create and manage itineraries (owner side) and serve them publicly."""

    def __init__(self, session: Session, actor: Optional[Actor] = None) -> None:
        self.session = session
        self.actor = actor

    def _access(self) -> FolderAccess:
        if self.actor is None:
            raise NotFoundError("Itinerary not found")
        return FolderAccess(self.session, self.actor)

    def create_itinerary(self, folder_id: str, settings: Optional[Mapping[str, Any]] = None) -> SharedItinerary:
        self._access().get(folder_id, write=True)
        itinerary = SharedItinerary(
            folder_id=folder_id,
            user_id=self.actor.user_id,
            settings=_coerce_settings(settings),
            is_active=True,
        )
        self.session.add(itinerary)
        flush_or_raise(self.session, "Create itinerary")
        LOGGER.info(f"Created itinerary {itinerary.id} for folder {folder_id}")
        return itinerary

    def list_itineraries(self, folder_id: str) -> List[SharedItinerary]:
        self._access().get(folder_id)
        return (
            self.session.query(SharedItinerary)
            .filter(SharedItinerary.folder_id == folder_id)
            .order_by(SharedItinerary.created_at.desc())
            .all()
        )

    def set_active(self, itinerary_id: str, active: bool) -> SharedItinerary:
        itinerary = self.session.get(SharedItinerary, itinerary_id)
        if itinerary is None:
            raise NotFoundError(f"Itinerary {itinerary_id} not found")
        self._access().get(itinerary.folder_id, write=True)
        itinerary.is_active = bool(active)
        flush_or_raise(self.session, "Toggle itinerary")
        return itinerary

    # -------------------------------------------------------------------------
    # Public side
    # -------------------------------------------------------------------------

    def _active(self, itinerary_id: str) -> SharedItinerary:
        itinerary = self.session.get(SharedItinerary, itinerary_id)
        if itinerary is None or not itinerary.is_active:
            raise NotFoundError("Itinerary not found")
        return itinerary

    def public_view(self, itinerary_id: str) -> Dict[str, Any]:
        """
        Visits of the itinerary's folder by date and time, cancelled ones
        excluded, each with a property card redacted per the settings.
        """
        itinerary = self._active(itinerary_id)
        settings = _coerce_settings(itinerary.settings)
        folder = self.session.get(Folder, itinerary.folder_id)

        visits = (
            self.session.query(Visit)
            .filter(Visit.folder_id == itinerary.folder_id)
            .filter(Visit.status != VisitStatus.CANCELLED.value)
            .order_by(Visit.visit_date, Visit.visit_time)
            .all()
        )
        property_ids = {v.property_id for v in visits}
        properties = {
            p.id: p
            for p in self.session.query(Property).filter(Property.id.in_(property_ids)).all()
        } if property_ids else {}

        stops = []
        for visit in visits:
            stop = {
                "visit_id": visit.id,
                "date": visit.visit_date.isoformat(),
                "time": visit.visit_time,
                "status": visit.status,
                "client_feedback": visit.client_feedback,
                "property": property_card(properties.get(visit.property_id), settings),
            }
            if settings["show_checklist"]:
                stop["checklist"] = list(visit.checklist or [])
            stops.append(stop)

        return {
            "id": itinerary.id,
            "folder": {"name": folder.name if folder else "", "description": folder.description if folder else ""},
            "settings": settings,
            "visits": stops,
        }

    def leave_feedback(self, itinerary_id: str, visit_id: str, feedback: str) -> Visit:
        itinerary = self._active(itinerary_id)
        visit = self.session.get(Visit, visit_id)
        if visit is None or visit.folder_id != itinerary.folder_id:
            raise NotFoundError(f"Visit {visit_id} not found")
        text = (feedback or "").strip()
        if not text:
            raise ValidationError("Feedback cannot be empty")
        visit.client_feedback = text
        flush_or_raise(self.session, "Leave itinerary feedback")
        LOGGER.info(f"Client feedback on visit {visit_id} via itinerary {itinerary_id}")
        return visit


__all__ = ["ItineraryService", "DEFAULT_SETTINGS", "property_card"]
