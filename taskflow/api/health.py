"""Health check endpoint."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from .. import __version__

router = APIRouter()


@router.get("/health")
def health_check(request: Request):
    """
    Returns 200 OK while the process is serving requests, with uptime and
    the configured environment.
    """
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "environment": request.app.state.settings.environment,
        "version": __version__,
    }
