"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from rulesgate.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check (no store checks)."""
    return {
        "status": "ok",
        "service": "rulesgate",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check including the agreement store and session store.

    Returns 200 only if both backends respond.
    """
    stores = {
        "agreements": request.app.state.coordinator.store,
        "sessions": request.app.state.session_store,
    }
    checks = {"service": "ok"}
    overall_healthy = True

    for label, store in stores.items():
        try:
            await store.ping()
            checks[label] = f"ok ({store.name})"
        except Exception as e:
            checks[label] = f"error: {str(e)[:100]}"
            overall_healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if overall_healthy else "unhealthy",
            "service": "rulesgate",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
