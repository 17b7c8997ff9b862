"""Property domain service - properties and their renovation items."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from core.db import flush_or_raise
from core.exceptions import FolderRequiredError, NotFoundError, ValidationError
from core.logging_config import get_context_logger, get_logger
from core.models import Folder, Property, PropertyStatus, RenovationItem
from core.utils import clamp, utcnow
from domain.access import Actor, FolderAccess, require
from llm.renovation_advisor import RenovationAdvisor, RenovationSuggestion

LOGGER = get_logger(__name__)

TEXT_FIELDS = ("title", "url", "address", "exact_address", "notes", "floor")
FLOAT_FIELDS = ("price", "fees", "sqft", "covered_sqft", "uncovered_sqft")
INT_FIELDS = ("environments", "rooms", "bathrooms", "toilets", "parking", "age", "rating")
EDITABLE_FIELDS = TEXT_FIELDS + FLOAT_FIELDS + INT_FIELDS + ("status", "images")


def coerce_property_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize editable property fields.

    Raises:
        ValidationError: Unknown field, bad number or unknown status.
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown property fields: {sorted(unknown)}")

    values: Dict[str, Any] = {}
    for key, value in fields.items():
        try:
            if key in FLOAT_FIELDS:
                values[key] = float(value or 0)
            elif key in INT_FIELDS:
                values[key] = int(float(value or 0))
            elif key == "status":
                values[key] = PropertyStatus(value).value
            elif key == "images":
                values[key] = [str(url) for url in (value or []) if url]
            else:
                values[key] = str(value).strip() if value is not None else ""
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid value for {key}: {value!r}") from e

    if "rating" in values:
        values["rating"] = clamp(values["rating"], 1, 5)
    if values.get("exact_address") == "":
        values["exact_address"] = None
    return values


def _renovation_rows(items: Iterable[Mapping[str, Any]]) -> List[RenovationItem]:
    rows = []
    for position, item in enumerate(items):
        try:
            cost = float(item.get("estimated_cost") or 0)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid renovation cost: {item.get('estimated_cost')!r}") from e
        rows.append(
            RenovationItem(
                category=str(item.get("category") or "").strip(),
                description=str(item.get("description") or "").strip(),
                estimated_cost=cost,
                position=position,
            )
        )
    return rows


class PropertyService:
    """Service for property operations on behalf of one caller."""

    def __init__(self, session: Session, actor: Actor) -> None:
        self.session = session
        self.actor = actor
        self.access = FolderAccess(session, actor)
        self.log = get_context_logger(__name__, user_id=actor.user_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_properties(self, folder_id: Optional[str] = None) -> List[Property]:
        """Visible properties, newest first. Read failures degrade to []."""
        folder_ids = self.access.folder_ids()
        if folder_id is not None:
            folder_ids = [fid for fid in folder_ids if fid == folder_id]
        if not folder_ids:
            return []
        try:
            return (
                self.session.query(Property)
                .options(selectinload(Property.renovation_costs))
                .filter(Property.folder_id.in_(folder_ids))
                .order_by(Property.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to load properties: {e}")
            return []

    def get_property(self, property_id: str, write: bool = False) -> Property:
        prop = self.session.get(Property, property_id)
        if prop is None:
            raise NotFoundError(f"Property {property_id} not found")
        self.access.get(prop.folder_id, write=write)
        return prop

    def find_property(self, property_id: str) -> Optional[Property]:
        """Like ``get_property`` but None for missing or invisible records."""
        try:
            return self.get_property(property_id)
        except NotFoundError:
            return None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def resolve_folder(self, folder_id: Optional[str] = None, active_folder_id: Optional[str] = None) -> Folder:
        """
        Pick the folder a new property goes into.

        Order: explicit folder, then the active folder, then the newest
        folder the caller can see.

        Raises:
            FolderRequiredError: The caller has no folders at all.
        """
        target = folder_id or active_folder_id
        if target:
            return self.access.get(target, write=True)

        folders = self.access.folders()
        if not folders:
            raise FolderRequiredError("Create a folder first")
        return self.access.get(folders[0].id, write=True)

    def create_property(
        self,
        fields: Mapping[str, Any],
        folder_id: Optional[str] = None,
        active_folder_id: Optional[str] = None,
        renovations: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> Property:
        require(self.actor.can_manage_properties, "add properties")
        folder = self.resolve_folder(folder_id, active_folder_id)
        values = coerce_property_fields(fields)

        prop = Property(folder_id=folder.id, user_id=self.actor.user_id, created_at=utcnow(), **values)
        prop.renovation_costs = _renovation_rows(renovations or [])
        self.session.add(prop)
        flush_or_raise(self.session, "Create property")
        self.log.info(f"Created property {prop.id} in folder {folder.id}")
        return prop

    def update_property(self, property_id: str, fields: Mapping[str, Any]) -> Property:
        """Full edit. Concurrent edits are last-write-wins."""
        require(self.actor.can_manage_properties, "edit properties")
        prop = self.get_property(property_id, write=True)
        for key, value in coerce_property_fields(fields).items():
            setattr(prop, key, value)
        flush_or_raise(self.session, "Update property")
        return prop

    def update_status(self, property_id: str, status: str) -> Property:
        require(self.actor.can_manage_properties, "change property status")
        return self.update_property(property_id, {"status": status})

    def update_renovations(self, property_id: str, items: Iterable[Mapping[str, Any]]) -> Property:
        """Replace the renovation list wholesale; nothing is merged."""
        require(self.actor.can_edit_renovations, "edit renovations")
        prop = self.get_property(property_id, write=True)
        rows = _renovation_rows(items)

        prop.renovation_costs.clear()
        flush_or_raise(self.session, "Clear renovations")
        prop.renovation_costs.extend(rows)
        flush_or_raise(self.session, "Insert renovations")
        return prop

    def suggest_renovations(
        self,
        property_id: str,
        advisor: RenovationAdvisor,
    ) -> Tuple[Property, List[RenovationSuggestion]]:
        """Append AI-suggested renovation lines to the existing ones."""
        require(self.actor.can_edit_renovations, "edit renovations")
        prop = self.get_property(property_id, write=True)
        suggestions = advisor.suggest(prop.title, prop.exact_address or prop.address)
        if not suggestions:
            return prop, []

        items = [item.to_dict() for item in prop.renovation_costs]
        items.extend(s.to_dict() for s in suggestions)
        return self.update_renovations(property_id, items), suggestions

    def delete_property(self, property_id: str) -> None:
        """
        Delete a property and its renovation items.

        Visits and documents that reference it are left in place.
        """
        require(self.actor.can_manage_properties, "delete properties")
        prop = self.get_property(property_id, write=True)
        self.session.delete(prop)
        flush_or_raise(self.session, "Delete property")
        self.log.info(f"Deleted property {property_id}")


__all__ = ["PropertyService", "coerce_property_fields", "EDITABLE_FIELDS"]
