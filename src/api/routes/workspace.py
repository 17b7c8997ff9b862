"""Workspace snapshot route."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_actor, get_readonly_db
from domain.access import Actor
from domain.workspace import load_workspace

router = APIRouter()


@router.get("")
def get_workspace(
    db: Session = Depends(get_readonly_db),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """Everything the caller can see: folders with metrics, properties, visits, documents, links."""
    return load_workspace(db, actor)
