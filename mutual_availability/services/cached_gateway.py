"""Redis-backed caching decorator for any ProviderGateway"""
import asyncio
import logging
from datetime import datetime

from ..cache import Cache
from ..config import BUSY_CACHE_TTL_SECONDS
from ..domain.availability.providers import ProviderGateway
from ..domain.availability.schemas import BusyInterval

logger = logging.getLogger(__name__)


def build_busy_key(provider: str, user_id: str, start: datetime, end: datetime) -> str:
    return f"busy:{provider}:{user_id}:{start.isoformat()}:{end.isoformat()}"


class CachedProviderGateway:
    """
    Serves busy intervals from Redis when present, otherwise fetches from the
    wrapped gateway and stores the result for `ttl` seconds. Failed fetches
    are never cached. Redis calls run in a worker thread.
    """

    def __init__(self, gateway: ProviderGateway, cache: Cache, ttl: int = BUSY_CACHE_TTL_SECONDS):
        self.gateway = gateway
        self.cache = cache
        self.ttl = ttl

    async def fetch_busy_intervals(
        self, user_id: str, provider: str, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        key = build_busy_key(provider, user_id, start, end)
        cached = await asyncio.to_thread(self.cache.get, key)
        if cached is not None:
            return [BusyInterval.model_validate(item) for item in cached]

        intervals = await self.gateway.fetch_busy_intervals(user_id, provider, start, end)
        payload = [i.model_dump(mode="json") for i in intervals]
        await asyncio.to_thread(self.cache.set, key, payload, self.ttl)
        return intervals

    def invalidate_user(self, provider: str, user_id: str) -> int:
        """Drop every cached window for one user's provider"""
        return self.cache.delete_pattern(f"busy:{provider}:{user_id}:*")
