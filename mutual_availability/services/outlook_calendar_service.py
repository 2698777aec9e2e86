"""
Outlook Calendar Service
Fetches busy intervals through Microsoft Graph getSchedule
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

import httpx

from ..config import MICROSOFT_GRAPH_API
from ..domain.availability.errors import ProviderFetchFailed
from ..domain.availability.schemas import BusyInterval, ProviderType
from ..shared.timeutils import parse_provider_timestamp, to_utc
from .google_calendar_service import TokenStore

logger = logging.getLogger(__name__)

# Graph statuses that block time; "free" and "unknown" do not
BLOCKING_STATUSES = {"busy", "tentative", "oof", "workingElsewhere"}


class OutlookCalendarGateway:
    """ProviderGateway for Outlook / Microsoft 365 calendars"""

    provider = ProviderType.OUTLOOK.value

    def __init__(
        self,
        token_store: TokenStore,
        api_base: str = MICROSOFT_GRAPH_API,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.token_store = token_store
        self.api_base = api_base.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    async def fetch_busy_intervals(
        self, user_id: str, provider: str, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        access_token = await asyncio.to_thread(self.token_store.get_access_token, user_id, self.provider)
        if not access_token:
            raise ProviderFetchFailed(user_id, self.provider, "calendar not connected")
        # The connection's calendar_id holds the mailbox address to query
        mailbox = await asyncio.to_thread(self.token_store.get_calendar_id, user_id, self.provider)
        if not mailbox:
            raise ProviderFetchFailed(user_id, self.provider, "no mailbox configured")

        payload = {
            "schedules": [mailbox],
            "startTime": {"dateTime": _graph_time(start), "timeZone": "UTC"},
            "endTime": {"dateTime": _graph_time(end), "timeZone": "UTC"},
            "availabilityViewInterval": 30,
        }
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_base}/me/calendar/getSchedule",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Prefer": 'outlook.timezone="UTC"',
                },
                json=payload,
            )

        if response.status_code != 200:
            logger.error(f"❌ Graph getSchedule failed for user {user_id}: {response.status_code}")
            raise ProviderFetchFailed(user_id, self.provider, f"HTTP {response.status_code}")

        intervals = []
        for schedule in response.json().get("value", []):
            if schedule.get("error"):
                raise ProviderFetchFailed(
                    user_id, self.provider, schedule["error"].get("message", "schedule error")
                )
            for item in schedule.get("scheduleItems", []):
                if item.get("status") not in BLOCKING_STATUSES:
                    continue
                intervals.append(
                    BusyInterval(
                        start=_parse_graph_time(item["start"]),
                        end=_parse_graph_time(item["end"]),
                        label=item.get("subject"),
                        source_id=f"{self.provider}:{user_id}",
                    )
                )
        return intervals


def _graph_time(moment: datetime) -> str:
    return to_utc(moment).replace(tzinfo=None).isoformat()


def _parse_graph_time(value: dict) -> datetime:
    """Graph returns {"dateTime": ..., "timeZone": ...}; we always request UTC"""
    return parse_provider_timestamp(value["dateTime"] + "+00:00")
