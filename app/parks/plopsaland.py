"""
Plopsaland De Panne destination adapter (REST API with token auth).
"""
import logging
import re
import time
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from config.settings import settings

from .destination import Destination, cached
from .errors import DestinationConfigError, UpstreamError
from .park_types import AttractionType, EntityType, QueueType, ScheduleType, StatusType

logger = logging.getLogger("parks.plopsaland")

# Locales merged in priority order; names are taken from the last one that has them
LOCALES = ("nl", "en")

# "10:00 - 18:00" or "10.00 - 18.00"
OPENING_HOURS = re.compile(r"([0-9]{1,2})[:.]([0-9]{2}) - ([0-9]{1,2})[:.]([0-9]{2})")


class Plopsaland(Destination):
    """Plopsaland De Panne, a single-park destination on the Belgian coast."""

    slug = "plopsaland"
    name = "Plopsaland De Panne"
    timezone = "Europe/Brussels"
    park_id = "plopsalandpark"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        **kwargs,
    ):
        self.client_id = client_id or settings.plopsaland_client_id
        self.client_secret = client_secret or settings.plopsaland_client_secret
        self.base_url = base_url or settings.plopsaland_base_url
        if not self.client_id:
            raise DestinationConfigError("Missing clientId for Plopsaland")
        if not self.client_secret:
            raise DestinationConfigError("Missing clientSecret for Plopsaland")
        if not self.base_url:
            raise DestinationConfigError("Missing baseURL for Plopsaland")
        super().__init__(**kwargs)

    # =========================================================================
    # AUTH
    # =========================================================================

    async def get_auth_token(self) -> str:
        """
        Get an API access token, reusing the cached one until shortly before it expires.

        Raises:
            UpstreamError: If the token endpoint does not return a token
        """
        cache_key = f"{self.cache_prefix}:auth-token"
        token = await self.cache.get(cache_key)
        if token:
            return token

        response = await self.http(
            "POST",
            f"{self.base_url}nl/api/v1.0/token/000",
            json={"clientId": self.client_id, "clientSecret": self.client_secret},
        )
        body = response.json()
        token = body.get("accessToken")
        if not token:
            raise UpstreamError(self.slug, "Could not get auth token")

        # Expire one minute before the token does
        ttl_seconds = body.get("expiresOn", 0) - int(time.time()) - 60
        await self.cache.set(cache_key, token, max(0, ttl_seconds) * 1000)
        logger.info("Fetched new Plopsaland auth token")
        return token

    async def api_get(self, path: str) -> Any:
        """GET an API path with the access token attached."""
        token = await self.get_auth_token()
        response = await self.http(
            "GET", f"{self.base_url}{path}", params={"access_token": token}
        )
        return response.json()

    # =========================================================================
    # RAW DATA (cached)
    # =========================================================================

    @cached(minutes=1)
    async def get_wait_data(self) -> Dict[str, Any]:
        return await self.api_get("nl/api/v1.0/waitingTime/plopsaland-de-panne/attraction")

    @cached(minutes=720)
    async def get_attraction_data(self) -> Dict[str, Any]:
        return await self.api_get("nl/api/v1.0/details/all/plopsaland-de-panne/attraction")

    @cached(minutes=720)
    async def get_calendar_data(self) -> Dict[str, Any]:
        return await self.api_get("nl/api/v1.0/calendar/plopsaland-de-panne")

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def build_base_entity_object(self, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        entity = super().build_base_entity_object(data)
        if data:
            if data.get("uniqueID"):
                entity["_id"] = str(data["uniqueID"])
            if data.get("name"):
                entity["name"] = data["name"]
        return entity

    @staticmethod
    def merge_locale_data(
        data: Dict[str, Any],
        section: str,
        same: Optional[Callable[[Dict[str, Any], str, Dict[str, Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Merge one section of a per-locale response into a single list.

        Entries are keyed by their position in the section; each merged entry
        keeps that key under "key". English names replace Dutch ones.

        Args:
            data: Response shaped {locale: {section: {key: entry}}}
            section: Section to merge
            same: Whether a new (entry, key) matches an existing merged entry,
                by uniqueID when omitted
        """
        if same is None:
            def same(entry, key, existing):
                return entry.get("uniqueID") == existing.get("uniqueID")

        merged: List[Dict[str, Any]] = []
        for locale in LOCALES:
            entries = (data.get(locale) or {}).get(section) or {}
            for key, entry in entries.items():
                existing = next((m for m in merged if same(entry, key, m)), None)
                if existing is None:
                    merged.append({**entry, "key": key})
                elif locale == "en" and entry.get("name"):
                    existing["name"] = entry["name"]
        return merged

    async def build_destination_entity(self) -> Dict[str, Any]:
        return {
            **self.build_base_entity_object(),
            "_id": self.slug,
            "slug": self.slug,
            "name": self.name,
            "entityType": EntityType.DESTINATION,
        }

    async def build_park_entities(self) -> List[Dict[str, Any]]:
        return [
            {
                **self.build_base_entity_object(),
                "_id": self.park_id,
                "_destinationId": self.slug,
                "_parentId": self.slug,
                "slug": self.park_id,
                "name": self.name,
                "entityType": EntityType.PARK,
            }
        ]

    async def build_attraction_entities(self) -> List[Dict[str, Any]]:
        data = await self.get_attraction_data()
        return [
            {
                **self.build_base_entity_object(item),
                "entityType": EntityType.ATTRACTION,
                "attractionType": AttractionType.RIDE,
                "_destinationId": self.slug,
                "_parentId": self.park_id,
                "_parkId": self.park_id,
            }
            for item in self.merge_locale_data(data, "attraction")
        ]

    # =========================================================================
    # LIVE DATA & SCHEDULES
    # =========================================================================

    async def build_entity_live_data(self) -> List[Dict[str, Any]]:
        wait_data = await self.get_wait_data()
        if not wait_data or not wait_data.get("nl"):
            return []

        live_data = []
        for item in wait_data["nl"]:
            entry = {"_id": str(item["id"]), "status": StatusType.CLOSED}
            if item.get("showWaitingTime"):
                entry["status"] = StatusType.OPERATING
                try:
                    wait_time = int(item.get("currentWaitingTime"))
                except (TypeError, ValueError):
                    wait_time = None
                if wait_time is not None:
                    entry["queue"] = {QueueType.STANDBY: {"waitTime": wait_time}}
            live_data.append(entry)
        return live_data

    async def build_entity_schedule_data(self) -> List[Dict[str, Any]]:
        calendar = await self.get_calendar_data()
        months = self.merge_locale_data(
            calendar, "months", same=lambda entry, key, existing: existing["key"] == key
        )

        tz = ZoneInfo(self.timezone)
        schedule = []
        for month in months:
            for day_key, day in (month.get("openOn") or {}).items():
                match = OPENING_HOURS.search(day.get("label") or "")
                if not match:
                    continue
                day_date = date.fromisoformat(day_key[:10])
                open_hour, open_minute, close_hour, close_minute = map(int, match.groups())
                opening = datetime(
                    day_date.year, day_date.month, day_date.day, open_hour, open_minute, tzinfo=tz
                )
                closing = datetime(
                    day_date.year, day_date.month, day_date.day, close_hour, close_minute, tzinfo=tz
                )
                schedule.append({
                    "date": day_date.isoformat(),
                    "type": ScheduleType.OPERATING,
                    "openingTime": opening.isoformat(),
                    "closingTime": closing.isoformat(),
                })

        return [{"_id": self.park_id, "schedule": schedule}]
