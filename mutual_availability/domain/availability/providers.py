"""
Calendar provider gateways and the concurrent busy-data fan-out.

A gateway fetches raw busy intervals for one user from one calendar backend.
Gateways are registered by provider type once, when the orchestrator is
built; the fan-out then runs one task per (user, provider) pair, each with
its own timeout. A failing or slow provider only loses its own data.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Mapping, Optional, Protocol

from ...config import PROVIDER_FETCH_TIMEOUT_SECONDS
from ...shared.timeutils import to_reference_time
from .errors import ProviderFetchFailed
from .schemas import BusyInterval

logger = logging.getLogger(__name__)


class ProviderGateway(Protocol):
    async def fetch_busy_intervals(
        self, user_id: str, provider: str, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        """Busy intervals for `user_id` between `start` and `end`.

        May raise ProviderFetchFailed or any transport error.
        """
        ...


class ProviderRegistry:
    """Provider type -> gateway lookup"""

    def __init__(self, gateways: Optional[Mapping[str, ProviderGateway]] = None):
        self._gateways: dict[str, ProviderGateway] = {}
        for provider, gateway in (gateways or {}).items():
            self.register(provider, gateway)

    def register(self, provider: str, gateway: ProviderGateway) -> None:
        key = _key(provider)
        logger.info(f"📅 Registered calendar gateway for provider: {key}")
        self._gateways[key] = gateway

    def get(self, provider: str) -> Optional[ProviderGateway]:
        return self._gateways.get(_key(provider))

    def providers(self) -> list[str]:
        return sorted(self._gateways)

    def __contains__(self, provider: str) -> bool:
        return _key(provider) in self._gateways


def _key(provider) -> str:
    # Accept ProviderType members and plain strings alike
    return getattr(provider, "value", provider)


def _ingest(intervals, user_id: str, provider: str) -> list[BusyInterval]:
    """
    Normalise a gateway's payload into reference-time intervals.

    Zero/negative-length intervals are dropped and untagged ones are tagged
    with their source. Anything other than a list of BusyInterval raises
    ProviderFetchFailed.
    """
    if not isinstance(intervals, (list, tuple)):
        raise ProviderFetchFailed(user_id, provider, f"malformed payload ({type(intervals).__name__})")

    accepted = []
    for interval in intervals:
        if not isinstance(interval, BusyInterval):
            raise ProviderFetchFailed(user_id, provider, f"malformed interval ({type(interval).__name__})")
        update = {"start": to_reference_time(interval.start), "end": to_reference_time(interval.end)}
        if not interval.source_id:
            update["source_id"] = f"{provider}:{user_id}"
        interval = interval.model_copy(update=update)
        if interval.is_valid:
            accepted.append(interval)
    return accepted


async def _fetch_one(
    registry: ProviderRegistry,
    user_id: str,
    provider: str,
    start: datetime,
    end: datetime,
    timeout: float,
) -> list[BusyInterval]:
    provider = _key(provider)
    try:
        gateway = registry.get(provider)
        if gateway is None:
            raise ProviderFetchFailed(user_id, provider, "no gateway registered")
        intervals = await asyncio.wait_for(
            gateway.fetch_busy_intervals(user_id, provider, start, end), timeout=timeout
        )
        accepted = _ingest(intervals, user_id, provider)
    except asyncio.TimeoutError:
        failure = ProviderFetchFailed(user_id, provider, f"timed out after {timeout}s")
        logger.warning(f"⚠️ {failure.message}")
        return []
    except ProviderFetchFailed as failure:
        logger.warning(f"⚠️ {failure.message}")
        return []
    except Exception as e:
        failure = ProviderFetchFailed(user_id, provider, str(e) or type(e).__name__)
        logger.warning(f"⚠️ {failure.message}")
        return []

    logger.debug(f"✅ {provider} returned {len(accepted)} busy intervals for user {user_id}")
    return accepted


async def collect_busy_intervals(
    registry: ProviderRegistry,
    pairs: Iterable[tuple[str, str]],
    start: datetime,
    end: datetime,
    timeout: float = PROVIDER_FETCH_TIMEOUT_SECONDS,
) -> list[BusyInterval]:
    """
    Fetch busy data for every (user_id, provider) pair concurrently.

    Waits for all fetches to settle. Failures and timeouts are logged and
    contribute nothing. Cancelling the caller cancels every in-flight fetch.
    """
    pairs = list(dict.fromkeys((user_id, _key(provider)) for user_id, provider in pairs))
    if not pairs:
        return []

    logger.info(f"🔄 Fetching busy data from {len(pairs)} calendar connection(s)")
    results = await asyncio.gather(
        *(_fetch_one(registry, user_id, provider, start, end, timeout) for user_id, provider in pairs)
    )
    return [interval for batch in results for interval in batch]
