"""Caller identity, role checks and folder visibility."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, PermissionDeniedError
from core.logging_config import get_logger
from core.models import Folder, FolderShare, SharePermission, UserRole

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller. Authentication itself happens upstream."""

    user_id: str
    email: Optional[str] = None
    role: UserRole = UserRole.BUYER

    @property
    def can_manage_properties(self) -> bool:
        """Only buyers add properties or move them through the pipeline."""
        return self.role == UserRole.BUYER

    @property
    def can_edit_renovations(self) -> bool:
        return self.role in (UserRole.BUYER, UserRole.ARCHITECT)

    @property
    def is_read_only(self) -> bool:
        return self.role == UserRole.CONTRACTOR


def require(allowed: bool, action: str) -> None:
    if not allowed:
        raise PermissionDeniedError(f"Your role is not allowed to {action}")


class FolderAccess:
    """
    Resolves which folders a caller can see or write.

    A folder is visible to its owner and to anyone it was shared with by
    email; writes need ownership or an ``edit`` share.
    """

    def __init__(self, session: Session, actor: Actor) -> None:
        self.session = session
        self.actor = actor

    def _shared_ids_query(self, permissions: tuple[str, ...]):
        return (
            self.session.query(FolderShare.folder_id)
            .filter(FolderShare.email == (self.actor.email or "").lower())
            .filter(FolderShare.permission.in_(permissions))
        )

    def _visible_query(self):
        shared = self._shared_ids_query((SharePermission.VIEW.value, SharePermission.EDIT.value))
        clauses = [Folder.owner_id == self.actor.user_id]
        if self.actor.email:
            clauses.append(Folder.id.in_(shared))
        return self.session.query(Folder).filter(or_(*clauses))

    def folders(self) -> List[Folder]:
        """Visible folders, newest first. Read failures degrade to []."""
        try:
            return self._visible_query().order_by(Folder.created_at.desc()).all()
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to load folders for {self.actor.user_id}: {e}")
            return []

    def folder_ids(self) -> List[str]:
        return [folder.id for folder in self.folders()]

    def permission_for(self, folder: Folder) -> Optional[str]:
        """``owner``, ``edit``, ``view`` or None when the folder is not visible."""
        if folder.owner_id == self.actor.user_id:
            return "owner"
        if not self.actor.email:
            return None
        share = (
            self.session.query(FolderShare)
            .filter(FolderShare.folder_id == folder.id)
            .filter(FolderShare.email == self.actor.email.lower())
            .one_or_none()
        )
        return share.permission if share else None

    def get(self, folder_id: str, write: bool = False) -> Folder:
        """
        Load a folder the caller can see (or write, with ``write=True``).

        Raises:
            NotFoundError: Folder missing or not visible to the caller.
            PermissionDeniedError: Folder visible but read-only for the caller.
        """
        folder = self.session.get(Folder, folder_id)
        permission = self.permission_for(folder) if folder else None
        if folder is None or permission is None:
            raise NotFoundError(f"Folder {folder_id} not found")
        if write and permission not in ("owner", SharePermission.EDIT.value):
            raise PermissionDeniedError("This folder is shared with you read-only")
        return folder

    def get_owned(self, folder_id: str) -> Folder:
        folder = self.get(folder_id)
        if folder.owner_id != self.actor.user_id:
            raise PermissionDeniedError("Only the folder owner can do that")
        return folder


__all__ = ["Actor", "FolderAccess", "require"]
