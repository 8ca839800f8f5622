"""
Health check endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from iccmirror.api.routes.icc_events import manager
from iccmirror.core.config import get_settings
from iccmirror.core.database import get_db
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.services.icc_mirror_service import (IccMirrorService,
                                                   get_icc_service)

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint

    Returns:
        dict: Health status
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": get_settings().app_name,
    }


@router.get("/health/detailed")
def detailed_health_check(
    db: Session = Depends(get_db),
    service: IccMirrorService = Depends(get_icc_service),
):
    """
    Detailed health check with component status

    The card itself is not contacted; slots report whether they have been
    imported into the mirror.
    """
    settings = get_settings()
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": "0.1.0",
        "environment": settings.app_env,
        "components": {},
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
            "error": type(e).__name__,
        }

    health_status["components"]["icc"] = {
        "status": "healthy",
        "topology": service.topology.value,
        "slots": {
            slot.value: {"imported": service.cache.is_imported(slot)}
            for slot in service.topology.slots
        },
    }
    health_status["components"]["websocket"] = {
        "status": "healthy",
        "connections": manager.connection_count(),
    }

    return health_status
