"""
Health check service for the location gateway.

Liveness says the process answers; readiness says the record store answers
too, within a timeout, with the time each check took.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Any

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "record_store")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """
    Overall health status of the service.

    Attributes:
        status: "healthy" or "unhealthy"
        timestamp: When the health check was performed
        dependencies: Individual dependency statuses
    """
    status: str
    timestamp: str
    dependencies: list[DependencyHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Service for checking the health of the gateway and its record store.

    Attributes:
        store: The record store to check
        check_timeout: Timeout in seconds for the readiness check
    """

    def __init__(self, store: Optional[Any], check_timeout: float = 5.0):
        """
        Initialize the HealthCheckService.

        Args:
            store: The record store instance, None if it was never connected
            check_timeout: Timeout in seconds for dependency checks (default: 5.0)
        """
        self.store = store
        self.check_timeout = check_timeout

    async def check_readiness(self) -> HealthStatus:
        """
        Check the record store for readiness.

        Returns:
            HealthStatus: "healthy" when the store answers, else "unhealthy"
        """
        store_health = await self._check_record_store()
        status = "healthy" if store_health.healthy else "unhealthy"

        return HealthStatus(
            status=status,
            timestamp=_utc_now_iso(),
            dependencies=[store_health]
        )

    async def check_liveness(self) -> dict[str, Any]:
        """
        Simple liveness check - process is running.

        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "timestamp": _utc_now_iso()
        }

    async def check_health(self) -> dict[str, Any]:
        """
        Basic health check - service is accepting requests.
        """
        return {
            "status": "ok",
            "timestamp": _utc_now_iso()
        }

    async def _check_record_store(self) -> DependencyHealth:
        """
        Ping the record store with a timeout.

        Returns:
            DependencyHealth: The health status of the record store
        """
        start_time = time.perf_counter()

        def _result(healthy: bool, error: Optional[str] = None) -> DependencyHealth:
            return DependencyHealth(
                name="record_store",
                healthy=healthy,
                response_time_ms=(time.perf_counter() - start_time) * 1000,
                error=error
            )

        if self.store is None:
            return _result(False, "Record store is not initialized")

        try:
            reachable = await asyncio.wait_for(self.store.ping(), timeout=self.check_timeout)
        except asyncio.TimeoutError:
            error_msg = f"Record store health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return _result(False, error_msg)
        except Exception as e:
            error_msg = f"Record store health check failed: {str(e)}"
            logger.error(error_msg)
            return _result(False, error_msg)

        if not reachable:
            logger.warning("Record store ping returned False")
            return _result(False, "Record store ping returned False")

        health = _result(True)
        logger.debug(f"Record store health check passed in {health.response_time_ms:.2f}ms")
        return health
