"""
RQ queue configuration and utilities.
Provides Redis connection and queue instances for background delivery.
"""

from functools import lru_cache
from typing import Any, Callable

from redis import Redis
from rq import Queue

from alphasource.core.config import settings
from alphasource.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_queue() -> Queue:
    """Default queue, created on first use so importing needs no live redis."""
    redis_conn = Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
    )
    return Queue("default", connection=redis_conn)


def enqueue_task(func: Callable[..., Any], *args: Any, **kwargs: Any) -> str:
    """
    Enqueue a background task.

    Args:
        func: Function to execute
        *args: Positional arguments for the function
        **kwargs: Keyword arguments for the function

    Returns:
        Job ID
    """
    job = get_queue().enqueue(func, *args, **kwargs)
    logger.info(f"Enqueued task {func.__name__} with job ID: {job.id}")
    return job.id
