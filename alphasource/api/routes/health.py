"""
Health checks for the load balancer and the deploy pipeline: the app itself,
the database, and the email queue when delivery goes through the worker.
"""

from fastapi import APIRouter
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from alphasource.api.deps import SessionDep
from alphasource.core.config import settings
from alphasource.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict:
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
    }


@router.get("/health/db")
def database_health_check(session: SessionDep) -> dict:
    """Run ``SELECT 1``; failures are reported in the body, not raised."""
    try:
        session.connection().execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "database": "error", "error": str(e)}

    return {"status": "healthy", "database": "ok"}


@router.get("/health/queue")
def queue_health_check() -> dict:
    """
    Ping redis when email goes through the RQ worker.
    With ``EMAIL_DELIVERY=log`` there is no queue to check.
    """
    if settings.EMAIL_DELIVERY != "queue":
        return {"status": "healthy", "delivery": settings.EMAIL_DELIVERY}

    from alphasource.workers.queue import get_queue

    try:
        queue = get_queue()
        queue.connection.ping()
        pending = queue.count
    except RedisError as e:
        logger.error(f"Queue health check failed: {e}")
        return {"status": "unhealthy", "delivery": "queue", "error": str(e)}

    return {"status": "healthy", "delivery": "queue", "pending": pending}
