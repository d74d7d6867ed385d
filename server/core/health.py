"""Health check utilities for the /health endpoint.

Provides uptime tracking and dependency checks.
"""
import time
from typing import Dict, Any, TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


async def check_database(database: "Database") -> bool:
    """Check database connectivity."""
    try:
        async with database.get_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


async def get_health_status(
    database: "Database",
    settings: "Settings",
    scheduler_running: bool = False,
) -> Dict[str, Any]:
    """Get health status for /health endpoint.

    Returns:
        Dict containing status, uptime, checks, and feature flags.
    """
    db_healthy = await check_database(database)

    return {
        "status": "healthy" if db_healthy else "degraded",
        "uptime_seconds": round(get_uptime(), 1),
        "checks": {
            "database": db_healthy,
            "scheduler": scheduler_running,
        },
        "features": {
            "scheduler": settings.scheduler_enabled,
            "unipile": settings.unipile_configured,
        },
    }
