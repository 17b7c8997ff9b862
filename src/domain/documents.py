"""Document domain service."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import flush_or_raise
from core.exceptions import NotFoundError, ValidationError
from core.logging_config import get_logger
from core.models import DocCategory, Property, PropertyDocument
from domain.access import Actor, FolderAccess, require

LOGGER = get_logger(__name__)


def _category(value: Optional[str]) -> str:
    try:
        return DocCategory(value or DocCategory.OTHER.value).value
    except ValueError as e:
        raise ValidationError(f"Unknown document category: {value!r}") from e


class DocumentService:
    """
    Documents filed under a folder, optionally attached to one property.

    Storage happens elsewhere; a document row only records the URL.
    """

    def __init__(self, session: Session, actor: Actor) -> None:
        self.session = session
        self.actor = actor
        self.access = FolderAccess(session, actor)

    def add_document(
        self,
        folder_id: str,
        name: str,
        file_url: str,
        category: Optional[str] = None,
        file_type: str = "",
        property_id: Optional[str] = None,
    ) -> PropertyDocument:
        require(not self.actor.is_read_only, "add documents")
        if not folder_id:
            raise ValidationError("A folder is required to file a document")
        self.access.get(folder_id, write=True)

        if not (name or "").strip():
            raise ValidationError("Document name is required")
        if not (file_url or "").strip():
            raise ValidationError("Document file URL is required")

        if property_id:
            prop = self.session.get(Property, property_id)
            if prop is None or prop.folder_id != folder_id:
                raise ValidationError(f"Property {property_id} is not in folder {folder_id}")

        document = PropertyDocument(
            folder_id=folder_id,
            property_id=property_id or None,
            name=name.strip(),
            category=_category(category),
            file_url=file_url.strip(),
            file_type=file_type or "",
        )
        self.session.add(document)
        flush_or_raise(self.session, "Add document")
        LOGGER.info(f"Added document {document.id} to folder {folder_id}")
        return document

    def delete_document(self, document_id: str) -> None:
        require(not self.actor.is_read_only, "delete documents")
        document = self.session.get(PropertyDocument, document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        self.access.get(document.folder_id, write=True)
        self.session.delete(document)
        flush_or_raise(self.session, "Delete document")

    def list_documents(
        self,
        folder_id: Optional[str] = None,
        category: Optional[str] = None,
        search: str = "",
        property_id: Optional[str] = None,
    ) -> List[PropertyDocument]:
        """Newest first, filtered by category and a case-insensitive name match."""
        folder_ids = self.access.folder_ids()
        if folder_id is not None:
            folder_ids = [fid for fid in folder_ids if fid == folder_id]
        if not folder_ids:
            return []
        try:
            query = self.session.query(PropertyDocument).filter(PropertyDocument.folder_id.in_(folder_ids))
            if category:
                query = query.filter(PropertyDocument.category == _category(category))
            if property_id:
                query = query.filter(PropertyDocument.property_id == property_id)
            documents = query.order_by(PropertyDocument.created_at.desc()).all()
        except SQLAlchemyError as e:
            LOGGER.error(f"Failed to load documents: {e}")
            return []

        needle = (search or "").strip().lower()
        if needle:
            documents = [d for d in documents if needle in d.name.lower()]
        return documents


__all__ = ["DocumentService"]
