"""Health status enumeration for database health checks."""

from enum import Enum


class EnumHealthStatus(str, Enum):
    """Health status reported by ``PoolManager.health_check``."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
