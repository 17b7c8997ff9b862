"""SQLAlchemy ORM models for the acquisition tracker."""
from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base
from core.utils import new_id, utcnow


# =============================================================================
# Enums
# =============================================================================


class PropertyStatus(str, enum.Enum):
    """Acquisition lifecycle of a property. Transitions are free."""
    WISHLIST = "Wishlist"
    CONTACTED = "Contacted"
    VISITED = "Visited"
    OFFERED = "Offered"
    DISCARDED = "Discarded"


class FolderStatus(str, enum.Enum):
    PENDIENTE = "Pendiente"
    ABIERTA = "Abierta"
    CERRADA = "Cerrada"


class TransactionType(str, enum.Enum):
    COMPRA = "Compra"
    ALQUILER = "Alquiler"


class VisitStatus(str, enum.Enum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class DocCategory(str, enum.Enum):
    LEGAL = "Legal"
    TECHNICAL = "Technical"
    FINANCIAL = "Financial"
    OTHER = "Other"


class SharePermission(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"


class UserRole(str, enum.Enum):
    """Team roles. Buyers own the pipeline; architects cost renovations."""
    BUYER = "Buyer"
    ARCHITECT = "Architect"
    CONTRACTOR = "Contractor"


# =============================================================================
# Folder Model
# =============================================================================


class Folder(Base):
    """
    A search folder (acquisition thesis) grouping properties, visits and
    documents under one budget, status and transaction type.
    """
    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=FolderStatus.PENDIENTE.value)
    transaction_type: Mapped[str] = mapped_column(String(20), default=TransactionType.COMPRA.value)
    budget: Mapped[float] = mapped_column(Float, default=0)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    properties: Mapped[list["Property"]] = relationship("Property", back_populates="folder")
    shares: Mapped[list["FolderShare"]] = relationship("FolderShare", back_populates="folder")

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name={self.name!r}, status={self.status})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "transaction_type": self.transaction_type,
            "budget": self.budget,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "status_updated_at": self.status_updated_at.isoformat() if self.status_updated_at else None,
            "color": self.color,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# Property Model
# =============================================================================


class Property(Base):
    """A real-estate listing tracked through the acquisition lifecycle."""
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    folder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("folders.id"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    title: Mapped[str] = mapped_column(String(500), default="")
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(500), default="")
    exact_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Financials
    price: Mapped[float] = mapped_column(Float, default=0)
    fees: Mapped[float] = mapped_column(Float, default=0)

    # Structure
    environments: Mapped[int] = mapped_column(Integer, default=0)
    rooms: Mapped[int] = mapped_column(Integer, default=0)
    bathrooms: Mapped[int] = mapped_column(Integer, default=0)
    toilets: Mapped[int] = mapped_column(Integer, default=0)
    parking: Mapped[int] = mapped_column(Integer, default=0)
    sqft: Mapped[float] = mapped_column(Float, default=0)
    covered_sqft: Mapped[float] = mapped_column(Float, default=0)
    uncovered_sqft: Mapped[float] = mapped_column(Float, default=0)
    age: Mapped[int] = mapped_column(Integer, default=0)
    floor: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=PropertyStatus.WISHLIST.value, index=True
    )
    rating: Mapped[int] = mapped_column(Integer, default=3)
    notes: Mapped[str] = mapped_column(Text, default="")
    images: Mapped[list[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    folder: Mapped["Folder"] = relationship("Folder", back_populates="properties")
    renovation_costs: Mapped[list["RenovationItem"]] = relationship(
        "RenovationItem",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="RenovationItem.position",
    )

    __table_args__ = (
        Index("ix_properties_folder_created", "folder_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title!r}, status={self.status})>"

    @property
    def cover_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @property
    def renovation_total(self) -> float:
        return sum(item.estimated_cost or 0 for item in self.renovation_costs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "title": self.title,
            "url": self.url,
            "address": self.address,
            "exact_address": self.exact_address,
            "price": self.price,
            "fees": self.fees,
            "environments": self.environments,
            "rooms": self.rooms,
            "bathrooms": self.bathrooms,
            "toilets": self.toilets,
            "parking": self.parking,
            "sqft": self.sqft,
            "covered_sqft": self.covered_sqft,
            "uncovered_sqft": self.uncovered_sqft,
            "age": self.age,
            "floor": self.floor,
            "status": self.status,
            "rating": self.rating,
            "notes": self.notes,
            "images": list(self.images or []),
            "renovation_costs": [item.to_dict() for item in self.renovation_costs],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class RenovationItem(Base):
    """A renovation cost line. Exclusively owned by one property."""
    __tablename__ = "renovations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String(100), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    estimated_cost: Mapped[float] = mapped_column(Float, default=0)
    position: Mapped[int] = mapped_column(Integer, default=0)

    property: Mapped["Property"] = relationship("Property", back_populates="renovation_costs")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "estimated_cost": self.estimated_cost,
        }


# =============================================================================
# Visit Model
# =============================================================================


class Visit(Base):
    """
    A scheduled property visit.

    ``property_id`` is deliberately not a foreign key: deleting a property
    leaves its visits behind as orphaned references.
    """
    __tablename__ = "visits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    folder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("folders.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    visit_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    visit_time: Mapped[str] = mapped_column("time", String(5), default="10:00")
    contact_name: Mapped[str] = mapped_column(String(255), default="")
    contact_phone: Mapped[str] = mapped_column(String(50), default="")
    checklist: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    notes: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=VisitStatus.SCHEDULED.value)
    client_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photos: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "folder_id": self.folder_id,
            "user_id": self.user_id,
            "date": self.visit_date.isoformat() if self.visit_date else None,
            "time": self.visit_time,
            "contact_name": self.contact_name,
            "contact_phone": self.contact_phone,
            "checklist": list(self.checklist or []),
            "notes": self.notes,
            "status": self.status,
            "client_feedback": self.client_feedback,
            "photos": self.photos,
        }


# =============================================================================
# Link Inbox
# =============================================================================


class PendingLink(Base):
    """A pasted listing URL waiting to be turned into a property."""
    __tablename__ = "link_inbox"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    folder_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("folders.id"), nullable=True, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "folder_id": self.folder_id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# Documents
# =============================================================================


class PropertyDocument(Base):
    """A stored document. A null ``property_id`` marks a folder-level document."""
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    folder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("folders.id"), nullable=False, index=True
    )
    property_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(20), default=DocCategory.OTHER.value)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "property_id": self.property_id,
            "name": self.name,
            "category": self.category,
            "file_url": self.file_url,
            "file_type": self.file_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# Sharing
# =============================================================================


class FolderShare(Base):
    """Access to a folder granted to another user by email."""
    __tablename__ = "folder_shares"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    folder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("folders.id"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    permission: Mapped[str] = mapped_column(String(10), default=SharePermission.VIEW.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    folder: Mapped["Folder"] = relationship("Folder", back_populates="shares")

    __table_args__ = (
        UniqueConstraint("folder_id", "email", name="uq_folder_share_email"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "email": self.email,
            "permission": self.permission,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SharedItinerary(Base):
    """A public, read-only view of a folder's visits for a client."""
    __tablename__ = "shared_itineraries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    folder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("folders.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    settings: Mapped[dict[str, bool]] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folder_id": self.folder_id,
            "user_id": self.user_id,
            "settings": dict(self.settings or {}),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


__all__ = [
    "PropertyStatus",
    "FolderStatus",
    "TransactionType",
    "VisitStatus",
    "DocCategory",
    "SharePermission",
    "UserRole",
    "Folder",
    "Property",
    "RenovationItem",
    "Visit",
    "PendingLink",
    "PropertyDocument",
    "FolderShare",
    "SharedItinerary",
]
