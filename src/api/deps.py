"""Request dependencies for FastAPI routes: database sessions, caller, intake store."""
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from core.db import SessionLocal
from core.models import UserRole
from domain.access import Actor
from domain.intake import IntakeSessionStore


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Commits when the route returns, rolls back when it raises.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_readonly_db() -> Generator[Session, None, None]:
    """FastAPI dependency for read-only routes; always rolls back."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """
    Build the caller from identity headers set by the upstream auth proxy.

    Raises 401 without a user id and 400 for an unknown role.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        role = UserRole(x_user_role) if x_user_role else UserRole.BUYER
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {x_user_role}",
        )
    return Actor(user_id=x_user_id, email=(x_user_email or None), role=role)


def get_intake_store(request: Request) -> IntakeSessionStore:
    return request.app.state.intake_store


__all__ = ["get_db", "get_readonly_db", "get_actor", "get_intake_store"]
