"""Redis connection factory for the busy-data cache"""

import logging
import os

import redis

logger = logging.getLogger(__name__)

CLIENT_OPTIONS = {
    "decode_responses": True,
    "socket_connect_timeout": 5,
    "socket_timeout": 5,
    "retry_on_timeout": True,
    "health_check_interval": 30,
}


def _masked(url: str) -> str:
    """Hide credentials: redis://user:pw@host:6379 -> redis:****@host:6379"""
    if "@" not in url:
        return "****"
    scheme = url.split(":", 1)[0]
    return f"{scheme}:****@{url.rsplit('@', 1)[1]}"


def get_redis_client() -> redis.Redis:
    """
    Connect using REDIS_URL when set, otherwise REDIS_HOST / REDIS_PORT /
    REDIS_PASSWORD / REDIS_DB / REDIS_SSL. Raises if the server does not
    answer a ping.
    """
    redis_url = os.getenv("REDIS_URL")
    if redis_url:
        logger.info(f"📡 Connecting to Redis at {_masked(redis_url)}")
        client = redis.from_url(redis_url, **CLIENT_OPTIONS)
    else:
        host = os.getenv("REDIS_HOST", "localhost")
        port = int(os.getenv("REDIS_PORT", "6379"))
        db = int(os.getenv("REDIS_DB", "0"))
        logger.info(f"📡 Connecting to Redis at {host}:{port} db={db}")
        client = redis.Redis(
            host=host,
            port=port,
            db=db,
            password=os.getenv("REDIS_PASSWORD"),
            ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
            **CLIENT_OPTIONS,
        )

    try:
        client.ping()
    except redis.RedisError as e:
        logger.error(f"❌ Redis ping failed: {e}")
        raise
    logger.info("✅ Redis connected")
    return client
