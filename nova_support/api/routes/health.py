"""
Health Check Endpoints.
System health and readiness checks.
"""

from datetime import datetime

from fastapi import APIRouter, Request

from nova_support.config import get_settings

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies the catalog, tools and model credentials.
    """
    state = request.app.state
    checks = {
        "catalog": False,
        "tool_registry": False,
        "support_session": False,
        "model_credentials": False
    }

    if hasattr(state, "products"):
        checks["catalog"] = len(state.products) > 0

    if hasattr(state, "tool_registry"):
        checks["tool_registry"] = len(state.tool_registry.names) > 0

    checks["support_session"] = hasattr(state, "support")

    if hasattr(state, "chat_model"):
        checks["model_credentials"] = state.chat_model.is_configured

    all_ready = all(checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check - just verifies the server is responding.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }
