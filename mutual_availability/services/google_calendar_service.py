"""
Google Calendar Service
Fetches busy intervals through the freeBusy API and writes back caller-built events
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional, Protocol

import httpx

from ..config import GOOGLE_CALENDAR_API
from ..domain.availability.errors import ProviderFetchFailed
from ..domain.availability.schemas import BusyInterval, EventDescriptor, ProviderType
from ..shared.timeutils import parse_provider_timestamp, to_utc

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    def get_access_token(self, user_id: str, provider: str) -> Optional[str]: ...

    def get_calendar_id(self, user_id: str, provider: str) -> Optional[str]: ...


class GoogleCalendarGateway:
    """ProviderGateway for Google Calendar"""

    provider = ProviderType.GOOGLE.value

    def __init__(
        self,
        token_store: TokenStore,
        api_base: str = GOOGLE_CALENDAR_API,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.token_store = token_store
        self.api_base = api_base.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def _credentials(self, user_id: str) -> tuple[str, str]:
        # Token lookups hit the database; keep them off the event loop
        access_token = await asyncio.to_thread(self.token_store.get_access_token, user_id, self.provider)
        if not access_token:
            raise ProviderFetchFailed(user_id, self.provider, "calendar not connected")
        calendar_id = await asyncio.to_thread(self.token_store.get_calendar_id, user_id, self.provider)
        return access_token, calendar_id or "primary"

    async def fetch_busy_intervals(
        self, user_id: str, provider: str, start: datetime, end: datetime
    ) -> list[BusyInterval]:
        access_token, calendar_id = await self._credentials(user_id)

        payload = {
            "timeMin": to_utc(start).isoformat(),
            "timeMax": to_utc(end).isoformat(),
            "items": [{"id": calendar_id}],
        }
        async with self._client() as client:
            response = await client.post(
                f"{self.api_base}/freeBusy",
                headers={"Authorization": f"Bearer {access_token}"},
                json=payload,
            )

        if response.status_code != 200:
            logger.error(f"❌ Google freeBusy failed for user {user_id}: {response.status_code}")
            raise ProviderFetchFailed(user_id, self.provider, f"HTTP {response.status_code}")

        calendar = response.json().get("calendars", {}).get(calendar_id, {})
        errors = calendar.get("errors")
        if errors:
            reason = ", ".join(e.get("reason", "unknown") for e in errors)
            raise ProviderFetchFailed(user_id, self.provider, reason)

        return [
            BusyInterval(
                start=parse_provider_timestamp(block["start"]),
                end=parse_provider_timestamp(block["end"]),
                source_id=f"{self.provider}:{user_id}",
            )
            for block in calendar.get("busy", [])
        ]

    async def create_event(self, user_id: str, event: EventDescriptor) -> Optional[str]:
        """
        Insert a caller-built event into the user's calendar.
        Returns the Google Calendar event ID if successful, None otherwise
        """
        try:
            access_token, calendar_id = await self._credentials(user_id)
        except ProviderFetchFailed as e:
            logger.info(f"ℹ️ {e.message}")
            return None

        event_data = {
            "summary": event.summary,
            "description": event.description or "",
            "start": {"dateTime": to_utc(event.start).isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": to_utc(event.end).isoformat(), "timeZone": "UTC"},
        }
        if event.location:
            event_data["location"] = event.location

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_base}/calendars/{calendar_id}/events",
                    headers={"Authorization": f"Bearer {access_token}"},
                    json=event_data,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Error creating calendar event: {str(e)}")
            return None

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to create calendar event: {response.text}")
            return None

        event_id = response.json().get("id")
        logger.info(f"✅ Google Calendar event created: {event_id}")
        return event_id
