"""Folder routes - CRUD, metrics, sharing and reports."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_actor, get_db, get_readonly_db
from core.logging_config import get_logger
from core.models import FolderStatus, SharePermission, TransactionType
from domain.access import Actor
from domain.folders import FolderAggregator, FolderService
from domain.reports import build_folder_report

router = APIRouter()
LOGGER = get_logger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================


class FolderCreate(BaseModel):
    """Request body for folder creation."""

    name: str = Field(..., min_length=1, description="Folder name")
    description: Optional[str] = None
    status: FolderStatus = FolderStatus.PENDIENTE
    transaction_type: TransactionType = TransactionType.COMPRA
    budget: float = Field(0, ge=0)
    start_date: Optional[date] = None
    color: Optional[str] = None


class FolderUpdate(BaseModel):
    """Request body for a partial folder update."""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[FolderStatus] = None
    transaction_type: Optional[TransactionType] = None
    budget: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    color: Optional[str] = None


class ShareCreate(BaseModel):
    email: str = Field(..., min_length=3)
    permission: SharePermission = SharePermission.VIEW


def _folders_payload(db: Session, actor: Actor) -> List[Dict[str, Any]]:
    return FolderAggregator(db).summarize_all(FolderService(db, actor).list_folders())


# =============================================================================
# Routes
# =============================================================================


@router.get("")
def list_folders(
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> List[Dict[str, Any]]:
    """Visible folders with their metrics, newest first."""
    return _folders_payload(db, actor)


@router.post("", status_code=201)
def create_folder(
    body: FolderCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    values = body.model_dump(mode="json")
    folder = FolderService(db, actor).create_folder(values.pop("name"), **values)
    return {"folder": folder.to_dict(), "folders": _folders_payload(db, actor)}


@router.get("/{folder_id}")
def get_folder(
    folder_id: str,
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    folder = FolderService(db, actor).get_folder(folder_id)
    return {**folder.to_dict(), "metrics": FolderAggregator(db).summarize(folder).to_dict()}


@router.patch("/{folder_id}")
def update_folder(
    folder_id: str,
    body: FolderUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    changes = body.model_dump(mode="json", exclude_unset=True)
    folder = FolderService(db, actor).update_folder(folder_id, changes)
    return {"folder": folder.to_dict(), "folders": _folders_payload(db, actor)}


@router.delete("/{folder_id}")
def delete_folder(
    folder_id: str,
    confirm: bool = Query(False, description="Must be true; deletion cascades to everything in the folder"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    summary = FolderService(db, actor).delete_folder(folder_id, confirm=confirm)
    return {"deleted": summary.as_dict(), "folders": _folders_payload(db, actor)}


@router.get("/{folder_id}/report")
def folder_report(
    folder_id: str,
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """Side-by-side comparison of the folder's properties."""
    return build_folder_report(db, actor, folder_id)


# -----------------------------------------------------------------------------
# Sharing
# -----------------------------------------------------------------------------


@router.get("/{folder_id}/shares")
def list_shares(
    folder_id: str,
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> List[Dict[str, Any]]:
    return [share.to_dict() for share in FolderService(db, actor).list_shares(folder_id)]


@router.post("/{folder_id}/shares", status_code=201)
def share_folder(
    folder_id: str,
    body: ShareCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    service = FolderService(db, actor)
    share = service.share_folder(folder_id, body.email, body.permission.value)
    return {"share": share.to_dict(), "shares": [s.to_dict() for s in service.list_shares(folder_id)]}


@router.delete("/{folder_id}/shares/{share_id}")
def remove_share(
    folder_id: str,
    share_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    service = FolderService(db, actor)
    service.remove_share(share_id)
    return {"shares": [s.to_dict() for s in service.list_shares(folder_id)]}
