"""Document routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_actor, get_db, get_readonly_db
from core.models import DocCategory
from domain.access import Actor
from domain.documents import DocumentService

router = APIRouter()


class DocumentCreate(BaseModel):
    """Document metadata. The file itself is already uploaded; only its URL is stored."""

    folder_id: str
    name: str = Field(..., min_length=1)
    file_url: str = Field(..., min_length=1)
    category: DocCategory = DocCategory.OTHER
    file_type: str = ""
    property_id: Optional[str] = None


@router.get("")
def list_documents(
    folder_id: Optional[str] = Query(None),
    category: Optional[DocCategory] = Query(None),
    search: str = Query("", description="Case-insensitive match on the document name"),
    property_id: Optional[str] = Query(None),
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> List[Dict[str, Any]]:
    documents = DocumentService(db, actor).list_documents(
        folder_id=folder_id,
        category=category.value if category else None,
        search=search,
        property_id=property_id,
    )
    return [d.to_dict() for d in documents]


@router.post("", status_code=201)
def add_document(
    body: DocumentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    service = DocumentService(db, actor)
    document = service.add_document(
        body.folder_id,
        body.name,
        body.file_url,
        category=body.category.value,
        file_type=body.file_type,
        property_id=body.property_id,
    )
    return {
        "document": document.to_dict(),
        "documents": [d.to_dict() for d in service.list_documents(folder_id=body.folder_id)],
    }


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    service = DocumentService(db, actor)
    service.delete_document(document_id)
    return {"deleted": document_id, "documents": [d.to_dict() for d in service.list_documents()]}
