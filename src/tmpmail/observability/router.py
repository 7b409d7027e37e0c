"""Observability API endpoints.

Provides metrics, health checks, and readiness probes for monitoring.
"""

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from ..dependencies import ListenerDep, StoreDep
from .health import (
    check_listener_health,
    check_store_health,
    get_overall_health,
    HealthStatus,
)

router = APIRouter(tags=["Observability"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    include_in_schema=False,
)
def metrics():
    """Expose Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Returns health status of the mail listener and message store",
)
def health_check(store: StoreDep, listener: ListenerDep):
    """Check health of all components.

    Returns 200 unless a component is unhealthy, then 503.
    """
    components = {
        "smtp_listener": check_listener_health(listener),
        "message_store": check_store_health(store),
    }

    overall_status = get_overall_health(components)

    response_data = {
        "status": overall_status.value,
        "components": {
            name: {
                "status": comp.status.value,
                "message": comp.message,
                "details": comp.details,
            }
            for name, comp in components.items()
        }
    }

    status_code = 200 if overall_status != HealthStatus.UNHEALTHY else 503

    return JSONResponse(
        content=response_data,
        status_code=status_code
    )


@router.get(
    "/ready",
    summary="Readiness check endpoint",
)
def readiness_check(listener: ListenerDep):
    """Ready once the mail listener accepts connections (or none is configured)."""
    listener_health = check_listener_health(listener)

    if listener_health.status != HealthStatus.UNHEALTHY:
        return {
            "status": "ready",
            "message": listener_health.message,
        }
    return JSONResponse(
        content={
            "status": "not_ready",
            "message": listener_health.message,
        },
        status_code=503
    )
