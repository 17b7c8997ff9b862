"""Folder domain service - search folders, sharing, metrics and cascade delete."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import flush_or_raise
from core.exceptions import ConfirmationRequiredError, DatabaseError, NotFoundError, ValidationError
from core.logging_config import get_context_logger, get_logger
from core.models import (
    Folder,
    FolderShare,
    FolderStatus,
    PendingLink,
    Property,
    PropertyDocument,
    PropertyStatus,
    RenovationItem,
    SharedItinerary,
    SharePermission,
    TransactionType,
    Visit,
    VisitStatus,
)
from core.types import CascadeSummary
from core.utils import days_since, ensure_aware, utcnow
from domain.access import Actor, FolderAccess, require

LOGGER = get_logger(__name__)

EDITABLE_FIELDS = ("name", "description", "status", "transaction_type", "budget", "start_date", "color")


@dataclass
class FolderMetrics:
    """Derived numbers shown next to a folder."""

    folder_id: str
    days_elapsed: int
    budget: float
    asset_count: int
    active_asset_count: int
    visit_count: int
    scheduled_visits: int
    completed_visits: int
    document_count: int
    total_asking_price: float
    total_renovation: float

    @property
    def budget_remaining(self) -> float:
        return self.budget - self.total_asking_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder_id": self.folder_id,
            "days_elapsed": self.days_elapsed,
            "budget": self.budget,
            "budget_remaining": self.budget_remaining,
            "asset_count": self.asset_count,
            "active_asset_count": self.active_asset_count,
            "visit_count": self.visit_count,
            "scheduled_visits": self.scheduled_visits,
            "completed_visits": self.completed_visits,
            "document_count": self.document_count,
            "total_asking_price": self.total_asking_price,
            "total_renovation": self.total_renovation,
        }


def _coerce_folder_fields(changes: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown folder fields: {sorted(unknown)}")

    values = dict(changes)
    try:
        if "status" in values:
            values["status"] = FolderStatus(values["status"]).value
        if "transaction_type" in values:
            values["transaction_type"] = TransactionType(values["transaction_type"]).value
    except ValueError as e:
        raise ValidationError(str(e)) from e

    if "name" in values and not str(values["name"] or "").strip():
        raise ValidationError("Folder name is required")
    if "budget" in values:
        values["budget"] = float(values["budget"] or 0)
    if isinstance(values.get("start_date"), str):
        try:
            values["start_date"] = date.fromisoformat(values["start_date"]) if values["start_date"] else None
        except ValueError as e:
            raise ValidationError(f"Invalid start_date: {values['start_date']}") from e
    return values


class FolderService:
    """Service for folder operations on behalf of one caller."""

    def __init__(self, session: Session, actor: Actor) -> None:
        self.session = session
        self.actor = actor
        self.access = FolderAccess(session, actor)
        self.log = get_context_logger(__name__, user_id=actor.user_id)

    def list_folders(self) -> List[Folder]:
        return self.access.folders()

    def get_folder(self, folder_id: str) -> Folder:
        return self.access.get(folder_id)

    def create_folder(self, name: str, **fields: Any) -> Folder:
        require(not self.actor.is_read_only, "create folders")
        values = _coerce_folder_fields({"name": name, **fields})
        now = utcnow()
        folder = Folder(
            owner_id=self.actor.user_id,
            name=values.pop("name").strip(),
            status_updated_at=now,
            created_at=now,
            **values,
        )
        self.session.add(folder)
        flush_or_raise(self.session, "Create folder")
        self.log.info(f"Created folder {folder.id} ({folder.name})")
        return folder

    def update_folder(self, folder_id: str, changes: Mapping[str, Any]) -> Folder:
        """
        Apply ``changes`` to a folder.

        ``status_updated_at`` moves only when the status actually changes.
        """
        folder = self.access.get(folder_id, write=True)
        values = _coerce_folder_fields(changes)

        new_status = values.pop("status", None)
        if new_status is not None and new_status != folder.status:
            folder.status = new_status
            folder.status_updated_at = utcnow()

        for key, value in values.items():
            setattr(folder, key, value.strip() if key == "name" else value)

        flush_or_raise(self.session, "Update folder")
        return folder

    def delete_folder(self, folder_id: str, confirm: bool = False) -> CascadeSummary:
        """
        Delete a folder and everything filed under it.

        Irreversible. Removes the folder's properties (with their renovation
        items), visits, documents, pending links, shares and itineraries.

        Raises:
            ConfirmationRequiredError: ``confirm`` was not set.
        """
        folder = self.access.get_owned(folder_id)
        if not confirm:
            raise ConfirmationRequiredError(
                f"Deleting folder '{folder.name}' removes all of its properties, visits, "
                "documents and pending links. Pass confirm=true to proceed."
            )

        log = get_context_logger(__name__, user_id=self.actor.user_id, folder_id=folder_id)
        property_ids = self.session.query(Property.id).filter(Property.folder_id == folder_id)

        try:
            renovations = (
                self.session.query(RenovationItem)
                .filter(RenovationItem.property_id.in_(property_ids.scalar_subquery()))
                .delete(synchronize_session=False)
            )
            properties = (
                self.session.query(Property)
                .filter(Property.folder_id == folder_id)
                .delete(synchronize_session=False)
            )
            visits = self.session.query(Visit).filter(Visit.folder_id == folder_id).delete(synchronize_session=False)
            documents = (
                self.session.query(PropertyDocument)
                .filter(PropertyDocument.folder_id == folder_id)
                .delete(synchronize_session=False)
            )
            links = (
                self.session.query(PendingLink)
                .filter(PendingLink.folder_id == folder_id)
                .delete(synchronize_session=False)
            )
            shares = (
                self.session.query(FolderShare)
                .filter(FolderShare.folder_id == folder_id)
                .delete(synchronize_session=False)
            )
            itineraries = (
                self.session.query(SharedItinerary)
                .filter(SharedItinerary.folder_id == folder_id)
                .delete(synchronize_session=False)
            )
            self.session.query(Folder).filter(Folder.id == folder_id).delete(synchronize_session=False)
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            log.error(f"Folder cascade delete failed: {e}")
            raise DatabaseError(f"Deleting folder {folder_id} failed") from e

        self.session.expire_all()
        summary = CascadeSummary(
            folder_id=folder_id,
            properties=properties,
            renovations=renovations,
            visits=visits,
            documents=documents,
            pending_links=links,
            shares=shares,
            itineraries=itineraries,
        )
        log.warning(f"Deleted folder: {summary.summary()}")
        return summary

    # -------------------------------------------------------------------------
    # Sharing
    # -------------------------------------------------------------------------

    def share_folder(self, folder_id: str, email: str, permission: str = SharePermission.VIEW.value) -> FolderShare:
        """Grant (or change) access to a folder for ``email``."""
        self.access.get_owned(folder_id)
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValidationError("A valid email is required to share a folder")
        try:
            permission = SharePermission(permission).value
        except ValueError as e:
            raise ValidationError(str(e)) from e

        share = (
            self.session.query(FolderShare)
            .filter(FolderShare.folder_id == folder_id, FolderShare.email == email)
            .one_or_none()
        )
        if share is None:
            share = FolderShare(folder_id=folder_id, email=email, permission=permission)
            self.session.add(share)
        else:
            share.permission = permission
        flush_or_raise(self.session, "Share folder")
        self.log.info(f"Shared folder {folder_id} with {email} ({permission})")
        return share

    def list_shares(self, folder_id: str) -> List[FolderShare]:
        self.access.get(folder_id)
        return (
            self.session.query(FolderShare)
            .filter(FolderShare.folder_id == folder_id)
            .order_by(FolderShare.created_at)
            .all()
        )

    def remove_share(self, share_id: str) -> None:
        share = self.session.get(FolderShare, share_id)
        if share is None:
            raise NotFoundError(f"Share {share_id} not found")
        self.access.get_owned(share.folder_id)
        self.session.delete(share)
        flush_or_raise(self.session, "Remove share")


class FolderAggregator:
    """Compose folders with derived counts and money totals."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def summarize(self, folder: Folder, now: Optional[datetime] = None) -> FolderMetrics:
        properties = self.session.query(Property).filter(Property.folder_id == folder.id).all()

        visit_counts = dict(
            self.session.query(Visit.status, func.count(Visit.id))
            .filter(Visit.folder_id == folder.id)
            .group_by(Visit.status)
            .all()
        )
        document_count = (
            self.session.query(func.count(PropertyDocument.id))
            .filter(PropertyDocument.folder_id == folder.id)
            .scalar()
        ) or 0

        since = folder.start_date or ensure_aware(folder.created_at)
        return FolderMetrics(
            folder_id=folder.id,
            days_elapsed=days_since(since, now),
            budget=folder.budget or 0,
            asset_count=len(properties),
            active_asset_count=sum(1 for p in properties if p.status != PropertyStatus.DISCARDED.value),
            visit_count=sum(visit_counts.values()),
            scheduled_visits=visit_counts.get(VisitStatus.SCHEDULED.value, 0),
            completed_visits=visit_counts.get(VisitStatus.COMPLETED.value, 0),
            document_count=document_count,
            total_asking_price=sum(p.price or 0 for p in properties),
            total_renovation=sum(p.renovation_total for p in properties),
        )

    def summarize_all(self, folders: Iterable[Folder]) -> List[Dict[str, Any]]:
        """Folder dicts with a ``metrics`` entry. Read failures degrade to []."""
        try:
            return [{**folder.to_dict(), "metrics": self.summarize(folder).to_dict()} for folder in folders]
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to aggregate folder metrics: {e}")
            return []


__all__ = ["FolderService", "FolderAggregator", "FolderMetrics"]
