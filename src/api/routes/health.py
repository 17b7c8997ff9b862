"""Health check routes."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.deps import get_readonly_db
from core.config import get_settings
from core.logging_config import get_logger
from core.utils import utcnow

router = APIRouter()
LOGGER = get_logger(__name__)


@router.get("/")
async def health_check() -> Dict[str, Any]:
    """Basic health check - always returns OK."""
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "environment": settings.environment,
    }


@router.get("/detailed")
def detailed_health_check(db: Session = Depends(get_readonly_db)) -> Dict[str, Any]:
    """Database connectivity plus which external integrations are configured."""
    settings = get_settings()
    status = "healthy"
    checks: Dict[str, Any] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy", "connected": True}
    except SQLAlchemyError as e:
        LOGGER.error(f"Database health check failed: {e}")
        status = "unhealthy"
        checks["database"] = {"status": "unhealthy", "error": str(e)}

    checks["geocoder"] = {"enabled": settings.is_geocoder_enabled(), "url": settings.geocoder_url}
    checks["link_preview"] = {"enabled": settings.is_link_preview_enabled()}
    checks["openai"] = {"configured": settings.is_openai_enabled()}
    checks["anthropic"] = {"configured": settings.is_anthropic_enabled()}

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "checks": checks,
        "enabled_services": settings.get_enabled_services(),
    }
