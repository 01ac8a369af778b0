"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager, get_redis_client
from app.database import get_db
from app.services.appointment_repository import AppointmentRepository
from app.services.scheduling_agent import SchedulingAgent


def get_cache_manager() -> CacheManager | None:
    """
    Get the reference lookup cache.

    Returns:
        Cache manager, or None when reference caching is disabled
    """
    if not settings.reference_cache_enabled:
        return None
    return CacheManager(get_redis_client())


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
ReferenceCache = Annotated[CacheManager | None, Depends(get_cache_manager)]


async def get_scheduling_agent(db: DatabaseSession, cache: ReferenceCache) -> SchedulingAgent:
    """
    Build a scheduling agent bound to the request's database session.

    Args:
        db: Database session
        cache: Optional reference lookup cache

    Returns:
        Scheduling agent
    """
    repository = AppointmentRepository(db, cache, cache_ttl=settings.reference_cache_ttl)
    return SchedulingAgent.from_settings(repository, settings)


# Type aliases for dependency injection
Scheduler = Annotated[SchedulingAgent, Depends(get_scheduling_agent)]
