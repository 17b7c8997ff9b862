"""Shared dataclasses and type helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(slots=True, frozen=True)
class CascadeSummary:
    """Row counts removed by a folder cascade delete."""

    folder_id: str
    properties: int = 0
    renovations: int = 0
    visits: int = 0
    documents: int = 0
    pending_links: int = 0
    shares: int = 0
    itineraries: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "properties": self.properties,
            "renovations": self.renovations,
            "visits": self.visits,
            "documents": self.documents,
            "pending_links": self.pending_links,
            "shares": self.shares,
            "itineraries": self.itineraries,
        }

    @property
    def total_rows_deleted(self) -> int:
        # The folder row itself counts too
        return sum(self.as_dict().values()) + 1

    def summary(self) -> str:
        """Return a compact human-readable summary for logging/CLI output."""
        counts = ", ".join(f"{key}={value}" for key, value in self.as_dict().items() if value)
        return f"folder({self.folder_id}) {counts or 'empty'}"

    def __str__(self) -> str:  # pragma: no cover - convenience for logging
        return self.summary()


__all__ = ["CascadeSummary"]
