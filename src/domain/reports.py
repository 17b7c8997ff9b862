"""Folder report - side-by-side comparison of a folder's properties."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.models import Property
from domain.access import Actor, FolderAccess
from domain.folders import FolderAggregator
from domain.properties import PropertyService


@dataclass
class PropertyComparison:
    property_id: str
    title: str
    status: str
    price: float
    fees: float
    sqft: float
    renovation_total: float
    rating: int

    @property
    def all_in_price(self) -> float:
        return self.price + self.renovation_total

    @property
    def price_per_sqft(self) -> Optional[float]:
        return round(self.price / self.sqft, 2) if self.sqft else None

    @property
    def all_in_per_sqft(self) -> Optional[float]:
        return round(self.all_in_price / self.sqft, 2) if self.sqft else None

    @classmethod
    def from_property(cls, prop: Property) -> "PropertyComparison":
        return cls(
            property_id=prop.id,
            title=prop.title,
            status=prop.status,
            price=prop.price or 0,
            fees=prop.fees or 0,
            sqft=prop.sqft or 0,
            renovation_total=prop.renovation_total,
            rating=prop.rating or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "property_id": self.property_id,
            "title": self.title,
            "status": self.status,
            "price": self.price,
            "fees": self.fees,
            "sqft": self.sqft,
            "renovation_total": self.renovation_total,
            "all_in_price": self.all_in_price,
            "price_per_sqft": self.price_per_sqft,
            "all_in_per_sqft": self.all_in_per_sqft,
            "rating": self.rating,
        }


def build_folder_report(session: Session, actor: Actor, folder_id: str) -> Dict[str, Any]:
    """Folder metrics plus one comparison row per property, cheapest all-in per m² first."""
    folder = FolderAccess(session, actor).get(folder_id)
    rows: List[PropertyComparison] = [
        PropertyComparison.from_property(prop)
        for prop in PropertyService(session, actor).list_properties(folder_id)
    ]
    # Properties without a surface go last
    rows.sort(key=lambda r: (r.all_in_per_sqft is None, r.all_in_per_sqft or 0))
    return {
        "folder": folder.to_dict(),
        "metrics": FolderAggregator(session).summarize(folder).to_dict(),
        "properties": [row.to_dict() for row in rows],
    }


__all__ = ["PropertyComparison", "build_folder_report"]
