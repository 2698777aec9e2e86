"""Builds the provider registry the orchestrator is constructed with"""
import logging
from typing import Optional

from ..cache import Cache
from ..config import BUSY_CACHE_ENABLED, BUSY_CACHE_TTL_SECONDS
from ..domain.availability.providers import ProviderRegistry
from .cached_gateway import CachedProviderGateway
from .google_calendar_service import GoogleCalendarGateway, TokenStore
from .outlook_calendar_service import OutlookCalendarGateway

logger = logging.getLogger(__name__)


def build_provider_registry(
    token_store: TokenStore,
    cache: Optional[Cache] = None,
    cache_enabled: bool = BUSY_CACHE_ENABLED,
    cache_ttl: int = BUSY_CACHE_TTL_SECONDS,
) -> ProviderRegistry:
    """
    Register the built-in Google and Outlook gateways.

    With caching enabled and a cache supplied, each gateway is wrapped in a
    CachedProviderGateway. Apple calendars have no built-in gateway; callers
    register their own under ProviderType.APPLE.
    """
    gateways = [GoogleCalendarGateway(token_store), OutlookCalendarGateway(token_store)]

    registry = ProviderRegistry()
    for gateway in gateways:
        if cache_enabled and cache is not None:
            registry.register(gateway.provider, CachedProviderGateway(gateway, cache, ttl=cache_ttl))
        else:
            registry.register(gateway.provider, gateway)

    if cache_enabled and cache is None:
        logger.warning("⚠️ Busy-data caching enabled but no cache configured; fetching directly")
    return registry
