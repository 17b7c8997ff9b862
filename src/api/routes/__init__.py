"""API route modules."""
from __future__ import annotations

from . import (
    health,
    folders,
    properties,
    intake,
    visits,
    documents,
    itineraries,
    workspace,
)

__all__ = [
    "health",
    "folders",
    "properties",
    "intake",
    "visits",
    "documents",
    "itineraries",
    "workspace",
]
