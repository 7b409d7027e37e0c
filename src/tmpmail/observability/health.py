"""Health check utilities for tmpmail.

Provides health and readiness checks for the mail listener and the
message store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ..smtp.listener import SMTPListener
from ..store.expiring_store import ExpiringStore
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health check status enum."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    details: Optional[dict] = None


def check_listener_health(listener: Optional[SMTPListener]) -> ComponentHealth:
    """Check that the mail listener is accepting connections.

    An API started without a listener reports DEGRADED rather than
    UNHEALTHY: queries still work, nothing new arrives.
    """
    if listener is None:
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message="Mail listener not running in this process",
        )
    if not listener.is_serving:
        logger.error("Health check: mail listener is not serving")
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message="Mail listener is not accepting connections",
        )
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Mail listener OK",
        details={"host": listener.host, "port": listener.bound_port},
    )


def check_store_health(store: ExpiringStore) -> ComponentHealth:
    """Report store size and TTL. The in-memory store cannot fail."""
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Message store OK",
        details={"entries": len(store), "ttl_seconds": store.ttl_seconds},
    )


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health from component checks.

    Returns:
        HealthStatus: UNHEALTHY if any component is unhealthy, DEGRADED if
            any is degraded, HEALTHY otherwise
    """
    statuses = [component.status for component in components.values()]
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
