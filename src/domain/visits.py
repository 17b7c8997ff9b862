"""Visit domain service - scheduling, checklists and completion."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import flush_or_raise
from core.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    VisitCompletionError,
)
from core.logging_config import get_context_logger, get_logger
from core.models import Property, PropertyStatus, Visit, VisitStatus
from core.utils import utcnow
from domain.access import Actor, FolderAccess, require

LOGGER = get_logger(__name__)

DEFAULT_CHECKLIST = (
    "Verificar presión de agua",
    "Revisar humedades en paredes",
    "Probar persianas y ventanas",
)

EDITABLE_FIELDS = ("date", "time", "contact_name", "contact_phone", "notes", "checklist", "photos")


def default_checklist() -> List[Dict[str, Any]]:
    return [{"task": label, "completed": False} for label in DEFAULT_CHECKLIST]


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid visit date: {value!r}") from e


def _parse_time(value: Any) -> str:
    text = str(value or "").strip()
    parts = text.split(":")
    if len(parts) < 2 or not all(p.isdigit() for p in parts[:2]):
        raise ValidationError(f"Invalid visit time: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValidationError(f"Invalid visit time: {value!r}")
    return f"{hour:02d}:{minute:02d}"


def _coerce_checklist(items: Any) -> List[Dict[str, Any]]:
    checklist = []
    for item in items or []:
        if isinstance(item, str):
            checklist.append({"task": item, "completed": False})
        elif isinstance(item, Mapping) and item.get("task"):
            checklist.append({"task": str(item["task"]), "completed": bool(item.get("completed"))})
        else:
            raise ValidationError(f"Invalid checklist item: {item!r}")
    return checklist


class VisitService:
    """Service for visit operations on behalf of one caller."""

    def __init__(self, session: Session, actor: Actor) -> None:
        self.session = session
        self.actor = actor
        self.access = FolderAccess(session, actor)
        self.log = get_context_logger(__name__, user_id=actor.user_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_visits(self, folder_id: Optional[str] = None, property_id: Optional[str] = None) -> List[Visit]:
        """Visible visits by date and time. Read failures degrade to []."""
        folder_ids = self.access.folder_ids()
        if folder_id is not None:
            folder_ids = [fid for fid in folder_ids if fid == folder_id]
        if not folder_ids:
            return []
        try:
            query = self.session.query(Visit).filter(Visit.folder_id.in_(folder_ids))
            if property_id:
                query = query.filter(Visit.property_id == property_id)
            return query.order_by(Visit.visit_date, Visit.visit_time).all()
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to load visits: {e}")
            return []

    def get_visit(self, visit_id: str, write: bool = False) -> Visit:
        visit = self.session.get(Visit, visit_id)
        if visit is None:
            raise NotFoundError(f"Visit {visit_id} not found")
        self.access.get(visit.folder_id, write=write)
        return visit

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def schedule_visit(
        self,
        property_id: str,
        visit_date: Any,
        visit_time: Any = "10:00",
        contact_name: str = "",
        contact_phone: str = "",
        notes: str = "",
        checklist: Optional[List[Any]] = None,
    ) -> Visit:
        """Schedule a visit to a property, seeded with the default inspection checklist."""
        require(not self.actor.is_read_only, "schedule visits")
        prop = self.session.get(Property, property_id)
        if prop is None:
            raise NotFoundError(f"Property {property_id} not found")
        self.access.get(prop.folder_id, write=True)

        visit = Visit(
            property_id=prop.id,
            folder_id=prop.folder_id,
            user_id=self.actor.user_id,
            visit_date=_parse_date(visit_date),
            visit_time=_parse_time(visit_time),
            contact_name=(contact_name or "").strip(),
            contact_phone=(contact_phone or "").strip(),
            notes=notes or "",
            checklist=_coerce_checklist(checklist) if checklist is not None else default_checklist(),
            status=VisitStatus.SCHEDULED.value,
            created_at=utcnow(),
        )
        self.session.add(visit)
        flush_or_raise(self.session, "Schedule visit")
        self.log.info(f"Scheduled visit {visit.id} for property {prop.id} on {visit.visit_date}")
        return visit

    def update_visit(self, visit_id: str, changes: Mapping[str, Any]) -> Visit:
        require(not self.actor.is_read_only, "edit visits")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown visit fields: {sorted(unknown)}")

        visit = self.get_visit(visit_id, write=True)
        for key, value in changes.items():
            if key == "date":
                visit.visit_date = _parse_date(value)
            elif key == "time":
                visit.visit_time = _parse_time(value)
            elif key == "checklist":
                visit.checklist = _coerce_checklist(value)
            elif key == "photos":
                visit.photos = [str(url) for url in (value or []) if url]
            else:
                setattr(visit, key, (value or "").strip() if key != "notes" else (value or ""))
        flush_or_raise(self.session, "Update visit")
        return visit

    def toggle_checklist_item(self, visit_id: str, index: int) -> Visit:
        require(not self.actor.is_read_only, "edit visits")
        visit = self.get_visit(visit_id, write=True)
        checklist = [dict(item) for item in visit.checklist or []]
        if not 0 <= index < len(checklist):
            raise ValidationError(f"Checklist item {index} does not exist")
        checklist[index]["completed"] = not checklist[index].get("completed", False)
        # JSON columns only notice reassignment
        visit.checklist = checklist
        flush_or_raise(self.session, "Toggle checklist item")
        return visit

    def cancel_visit(self, visit_id: str) -> Visit:
        require(not self.actor.is_read_only, "cancel visits")
        visit = self.get_visit(visit_id, write=True)
        if visit.status == VisitStatus.COMPLETED.value:
            raise ValidationError("A completed visit cannot be cancelled")
        visit.status = VisitStatus.CANCELLED.value
        flush_or_raise(self.session, "Cancel visit")
        return visit

    def delete_visit(self, visit_id: str) -> None:
        require(not self.actor.is_read_only, "delete visits")
        visit = self.get_visit(visit_id, write=True)
        self.session.delete(visit)
        flush_or_raise(self.session, "Delete visit")

    def record_feedback(self, visit_id: str, feedback: str) -> Visit:
        visit = self.get_visit(visit_id)
        visit.client_feedback = (feedback or "").strip() or None
        flush_or_raise(self.session, "Record visit feedback")
        return visit

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def complete_visit(self, visit_id: str, property_id: Optional[str] = None) -> Visit:
        """
        Mark a visit Completed and its property Visited.

        The two writes are coupled. If the property write fails the visit is
        put back to its previous status and ``VisitCompletionError`` is raised.
        If putting it back also fails, the error carries ``inconsistent=True``
        and the pair needs manual reconciliation.
        """
        require(self.actor.can_manage_properties, "complete visits")
        visit = self.get_visit(visit_id, write=True)
        if property_id and property_id != visit.property_id:
            raise ValidationError(f"Visit {visit_id} is not for property {property_id}")
        property_id = visit.property_id
        previous_status = visit.status

        visit.status = VisitStatus.COMPLETED.value
        flush_or_raise(self.session, "Complete visit")

        try:
            self._mark_property_visited(property_id)
        except (NotFoundError, PermissionDeniedError, DatabaseError) as e:
            self.log.warning(f"Property update failed for visit {visit_id}, reverting: {e}")
            try:
                self._revert_visit(visit_id, previous_status)
            except DatabaseError as revert_error:
                self.log.error(
                    f"Visit {visit_id} is Completed but property {property_id} is not Visited; "
                    f"revert failed: {revert_error}"
                )
                raise VisitCompletionError(
                    f"Visit {visit_id} completed but property {property_id} could not be updated",
                    visit_id=visit_id,
                    property_id=property_id,
                    inconsistent=True,
                ) from e
            raise VisitCompletionError(
                f"Could not mark property {property_id} as visited; visit left {previous_status}",
                visit_id=visit_id,
                property_id=property_id,
            ) from e

        self.log.info(f"Completed visit {visit_id}; property {property_id} marked Visited")
        return visit

    def _mark_property_visited(self, property_id: str) -> Property:
        prop = self.session.get(Property, property_id)
        if prop is None:
            raise NotFoundError(f"Property {property_id} no longer exists")
        self.access.get(prop.folder_id, write=True)
        prop.status = PropertyStatus.VISITED.value
        flush_or_raise(self.session, "Mark property visited")
        return prop

    def _revert_visit(self, visit_id: str, previous_status: str) -> None:
        visit = self.session.get(Visit, visit_id)
        if visit is None:
            raise DatabaseError(f"Visit {visit_id} vanished during completion")
        visit.status = previous_status
        flush_or_raise(self.session, "Revert visit completion")


__all__ = ["VisitService", "DEFAULT_CHECKLIST", "default_checklist"]
