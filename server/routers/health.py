"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app reach its session store?)
- /metrics - Session counts for monitoring
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_session_store = None
_directory = None


def set_health_dependencies(session_store=None, directory=None):
    """Set dependencies for health checks."""
    global _session_store, _directory
    _session_store = session_store
    _directory = directory


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Returns 503 if the session store does not answer.
    """
    checks = {}
    overall_healthy = True

    if _session_store is not None:
        try:
            healthy = await _session_store.ping()
        except Exception as e:
            logger.warning(f"Session store health check failed: {e}")
            healthy = False
        checks["session_store"] = {
            "status": "ok" if healthy else "error",
            "backend": type(_session_store).__name__,
        }
        overall_healthy = healthy
    else:
        checks["session_store"] = {"status": "not_configured"}

    status_code = 200 if overall_healthy else 503
    return Response(
        content=json.dumps({
            "status": "ok" if overall_healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=status_code,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """Session and player counts from the session directory."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if _directory is not None:
        stats = _directory.stats()
        metrics_data.update({
            "active_sessions": stats["sessions"],
            "sessions_by_phase": stats["by_phase"],
            "total_players": stats["players"],
        })
    return metrics_data
