import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

# Models must be imported so their tables are registered on Base
from . import models  # noqa: F401
from .cache import Cache
from .config import BUSY_CACHE_ENABLED
from .database import Base, SessionLocal, engine
from .domain.availability.repository import DatabaseTokenStore
from .domain.availability.router import router as availability_router
from .redis_client import get_redis_client
from .services.registry import build_provider_registry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Provider calls are logged by the gateways themselves
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def _busy_cache():
    if not BUSY_CACHE_ENABLED:
        return None
    cache = Cache(get_redis_client)
    if not cache.available:
        logger.warning("⚠️ Redis unreachable - busy data will be fetched without caching")
    return cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🔄 Mutual availability service starting...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
    except SQLAlchemyError as e:
        # Another worker may have created the tables first
        if "already exists" not in str(e):
            raise
        logger.info("ℹ️ Tables already present")

    app.state.provider_registry = build_provider_registry(DatabaseTokenStore(SessionLocal), cache=_busy_cache())
    logger.info(f"✅ Ready with providers: {', '.join(app.state.provider_registry.providers())}")

    yield
    logger.info("Mutual availability service shutting down")


app = FastAPI(title="Mutual Availability API", version="1.0.0", lifespan=lifespan)

app.include_router(availability_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
