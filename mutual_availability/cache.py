"""
Redis JSON cache for fetched busy data.
Instances are injected into gateways; nothing is cached at module level.
"""
import json
import logging
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Cache:
    """
    Namespaced Redis store with explicit per-write TTLs.

    The client is created on first use. Any Redis failure, including an
    unreachable server, is logged and treated as a miss so callers fall back
    to fetching directly.
    """

    def __init__(self, client_factory: Callable[[], Any], key_prefix: str = "availability"):
        self.client_factory = client_factory
        self.key_prefix = key_prefix
        self._client = None

    def _connect(self):
        if self._client is None:
            try:
                self._client = self.client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Busy-data cache unavailable: {e}")
        return self._client

    @property
    def available(self) -> bool:
        return self._connect() is not None

    def _namespaced(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def _run(self, action: str, key: str, operation: Callable[[Any], T], fallback: T) -> T:
        client = self._connect()
        if client is None:
            return fallback
        try:
            return operation(client)
        except Exception as e:
            logger.error(f"❌ Cache {action} failed for {key}: {e}")
            return fallback

    def get(self, key: str) -> Optional[Any]:
        def read(client):
            raw = client.get(self._namespaced(key))
            if raw is None:
                logger.debug(f"Cache miss: {key}")
                return None
            logger.debug(f"✅ Cache hit: {key}")
            return json.loads(raw)

        return self._run("read", key, read, None)

    def set(self, key: str, value: Any, ttl: int) -> bool:
        def write(client):
            client.setex(self._namespaced(key), ttl, json.dumps(value))
            logger.debug(f"✅ Cached {key} for {ttl}s")
            return True

        return self._run("write", key, write, False)

    def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob such as 'busy:google:user-1:*'"""

        def purge(client):
            keys = client.keys(self._namespaced(pattern))
            if not keys:
                return 0
            deleted = client.delete(*keys)
            logger.info(f"🔄 Invalidated {deleted} cached entries for {pattern}")
            return deleted

        return self._run("invalidate", pattern, purge, 0)
