"""
Universal resort destination adapters (Orlando and Hollywood).

Both resorts share one signed-token REST API and differ only by city,
timezone and naming.
"""
import asyncio
import base64
import hashlib
import hmac
import logging
import re
import time
from datetime import datetime
from email.utils import formatdate
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import requests

from app.cache import DataCategory
from config.settings import settings

from .destination import Destination, cached
from .errors import DestinationConfigError
from .park_types import (
    AttractionType,
    EntityType,
    QueueType,
    ReturnTimeState,
    StatusType,
)

logger = logging.getLogger("parks.universal")

# Restaurants of other dining types (coffee carts, snacks) are skipped
WANTED_DINING_TYPES = ("CasualDining", "FineDining")

# Wait times are also published for lands and other POIs; keep rides only
WANTED_LIVE_DATA_POI_TYPES = ("Rides",)

HOUR_MS = 60 * 60 * 1000


class UniversalResort(Destination):
    """
    Base adapter for a Universal resort.

    Subclasses set slug, name, timezone and city.
    """

    city: str = ""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        app_key: Optional[str] = None,
        base_url: Optional[str] = None,
        vqueue_url: Optional[str] = None,
        **kwargs,
    ):
        self.secret_key = secret_key or settings.universal_secret_key
        self.app_key = app_key or settings.universal_app_key
        self.base_url = base_url or settings.universal_base_url
        self.vqueue_url = vqueue_url or settings.universal_vqueue_url
        for option, value in (
            ("secretKey", self.secret_key),
            ("appKey", self.app_key),
            ("baseURL", self.base_url),
            ("vQueueURL", self.vqueue_url),
        ):
            if not value:
                raise DestinationConfigError(f"Missing Universal {option}")
        super().__init__(**kwargs)

    @property
    def resort_id(self) -> str:
        return f"universalresort_{self.city}"

    # =========================================================================
    # AUTH
    # =========================================================================

    def _sign(self, date_header: str) -> str:
        """Base64 HMAC-SHA256 of the app key and request date."""
        digest = hmac.new(
            self.secret_key.encode("utf-8"),
            f"{self.app_key}\n{date_header}\n".encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    @property
    def _token_cache_key(self) -> str:
        return f"{self.cache_prefix}:servicetoken"

    async def get_service_token(self) -> str:
        """Get a service token, cached until 12 hours before it expires (at least 1 hour)."""
        token_ttl = HOUR_MS

        async def login():
            nonlocal token_ttl
            date_header = formatdate(usegmt=True)
            response = await self.http(
                "POST",
                self.base_url,
                params={"city": self.city},
                json={"apikey": self.app_key, "signature": self._sign(date_header)},
                headers={"Date": date_header, "X-UNIWebService-ApiKey": self.app_key},
            )
            body = response.json()
            remaining_ms = body["TokenExpirationUnix"] * 1000 - time.time() * 1000
            token_ttl = max(HOUR_MS, remaining_ms - 12 * HOUR_MS)
            logger.info(f"Fetched new {self.slug} service token")
            return body["Token"]

        # TTL is read after login() has run
        return await self.cache.wrap(self._token_cache_key, login, lambda: token_ttl)

    async def api_get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET an API path with the service token, logging in again once on a 401.
        """
        for attempt in range(2):
            token = await self.get_service_token()
            headers = {
                "X-UNIWebService-ApiKey": self.app_key,
                "X-UNIWebService-Token": token,
            }
            try:
                response = await self.http(
                    "GET", f"{self.base_url}{path}", params=params, headers=headers
                )
            except requests.HTTPError as e:
                unauthorized = e.response is not None and e.response.status_code == 401
                if not unauthorized or attempt:
                    raise
                logger.info(f"{self.slug} service token rejected, logging in again")
                # Absent value with no lifetime drops the token
                await self.cache.set(self._token_cache_key, None, 0)
                continue
            return response.json()

    # =========================================================================
    # RAW DATA (cached)
    # =========================================================================

    @cached(minutes=180)
    async def get_parks(self) -> List[Dict[str, Any]]:
        body = await self.api_get("/venues", {"city": self.city})
        # CityWalk and other free areas are not parks
        return [venue for venue in body["Results"] if venue.get("AdmissionRequired")]

    @cached(minutes=180)
    async def get_poi(self) -> Dict[str, Any]:
        return await self.api_get("/pointsofinterest", {"city": self.city})

    @cached(category=DataCategory.LIVE_DATA)
    async def get_wait_times(self) -> Dict[str, Any]:
        return await self.api_get(
            "/pointsofinterest/rides/waittimes", {"city": self.city, "pageSize": "All"}
        )

    @cached(category=DataCategory.LIVE_DATA)
    async def get_virtual_queue_states(self) -> Optional[List[Dict[str, Any]]]:
        body = await self.api_get(
            "/Queues", {"city": self.city, "page": 1, "pageSize": "all"}
        )
        return (body or {}).get("Results")

    @cached(category=DataCategory.LIVE_DATA)
    async def get_virtual_queue(self, queue_id) -> Dict[str, Any]:
        today = datetime.now(ZoneInfo(self.timezone)).strftime("%m/%d/%Y")
        return await self.api_get(
            f"/{self.vqueue_url}/{queue_id}",
            {"page": 1, "pageSize": "all", "city": self.city, "appTimeForToday": today},
        )

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def _child_entity(self, data: Dict[str, Any], entity_type: EntityType) -> Dict[str, Any]:
        venue_id = str(data["VenueId"])
        return {
            **self.build_base_entity_object(data),
            "_id": str(data["Id"]),
            "_parkId": venue_id,
            "_parentId": venue_id,
            "name": data.get("MblDisplayName"),
            "entityType": entity_type,
        }

    async def build_destination_entity(self) -> Dict[str, Any]:
        return {
            **self.build_base_entity_object(),
            "_id": self.resort_id,
            "name": self.name,
            "entityType": EntityType.DESTINATION,
            "slug": self.slug,
        }

    async def build_park_entities(self) -> List[Dict[str, Any]]:
        parks = []
        for venue in await self.get_parks():
            content_id = venue["ExternalIds"]["ContentId"]
            parks.append({
                **self.build_base_entity_object(venue),
                "_id": str(venue["Id"]),
                "_parentId": self.resort_id,
                "_contentId": content_id.split(".venues.")[0],
                "name": venue["MblDisplayName"],
                "entityType": EntityType.PARK,
                "slug": re.sub(r"[^a-zA-Z]", "", venue["MblDisplayName"]).lower(),
            })
        return parks

    async def build_attraction_entities(self) -> List[Dict[str, Any]]:
        attractions = []
        for ride in (await self.get_poi())["Rides"]:
            entity = self._child_entity(ride, EntityType.ATTRACTION)
            # Hogwarts Express and friends
            if "train" in (ride.get("Tags") or []):
                entity["attractionType"] = AttractionType.TRANSPORT
            else:
                entity["attractionType"] = AttractionType.RIDE
            attractions.append(entity)
        return attractions

    async def build_restaurant_entities(self) -> List[Dict[str, Any]]:
        return [
            self._child_entity(place, EntityType.RESTAURANT)
            for place in (await self.get_poi())["DiningLocations"]
            if any(t in WANTED_DINING_TYPES for t in place.get("DiningTypes") or [])
        ]

    # =========================================================================
    # LIVE DATA
    # =========================================================================

    @staticmethod
    def _status_for(value: int):
        """
        Map a wait time value to (status, queue type, wait time).

        Negative values are status codes rather than minutes.
        """
        if value == -50:
            # Unknown wait, the app shows nothing
            return StatusType.OPERATING, QueueType.STANDBY, None
        if value == -9:
            return StatusType.OPERATING, QueueType.RETURN_TIME, None
        if value in (-4, -3):
            # Weather
            return StatusType.DOWN, QueueType.STANDBY, None
        if value in (-8, -6, -5, -2, -1):
            return StatusType.CLOSED, QueueType.STANDBY, None
        # -7 is "ride now"
        return StatusType.OPERATING, QueueType.STANDBY, max(0, value)

    def _local_iso(self, timestamp: str) -> str:
        moment = datetime.fromisoformat(timestamp)
        tz = ZoneInfo(self.timezone)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=tz)
        return moment.astimezone(tz).isoformat()

    async def _return_time(self, queue_id) -> Dict[str, Any]:
        """Earliest available virtual queue slot for a ride."""
        details = await self.get_virtual_queue(queue_id)
        slots = [
            (datetime.fromisoformat(slot["StartTime"]), slot)
            for slot in details.get("AppointmentTimes") or []
        ]
        if not slots:
            return {
                "returnStart": None,
                "returnEnd": None,
                "state": ReturnTimeState.TEMPORARILY_FULL,
            }
        _, earliest = min(slots, key=lambda pair: pair[0])
        return {
            "returnStart": self._local_iso(earliest["StartTime"]),
            "returnEnd": self._local_iso(earliest["EndTime"]),
            "state": ReturnTimeState.AVAILABLE,
        }

    async def _ride_live_data(self, ride: Dict[str, Any], vqueues) -> Dict[str, Any]:
        status, queue_type, wait_time = self._status_for(ride["Value"])
        entry = {"_id": str(ride["Key"]), "status": status, "queue": {}}

        if queue_type == QueueType.STANDBY:
            entry["queue"][QueueType.STANDBY] = {"waitTime": wait_time}
        elif vqueues:
            vqueue = next((q for q in vqueues if q.get("QueueEntityId") == ride["Key"]), None)
            if vqueue and vqueue.get("IsEnabled"):
                entry["queue"][QueueType.RETURN_TIME] = await self._return_time(vqueue["Id"])
        return entry

    async def build_entity_live_data(self) -> List[Dict[str, Any]]:
        wait_times = await self.get_wait_times()
        vqueues = await self.get_virtual_queue_states()

        poi_types = {}
        for poi_type, items in (await self.get_poi()).items():
            if not isinstance(items, list):
                continue
            for item in items:
                poi_types[str(item["Id"])] = poi_type

        rides = [
            ride for ride in wait_times["Results"]
            if poi_types.get(str(ride["Key"])) in WANTED_LIVE_DATA_POI_TYPES
        ]
        return list(await asyncio.gather(
            *(self._ride_live_data(ride, vqueues) for ride in rides)
        ))

    async def build_entity_schedule_data(self) -> List[Dict[str, Any]]:
        # Park hours are not published by this API
        return []


class UniversalOrlando(UniversalResort):
    slug = "universalorlando"
    name = "Universal Orlando Resort"
    timezone = "America/New_York"
    city = "orlando"


class UniversalStudios(UniversalResort):
    slug = "universalstudios"
    name = "Universal Studios"
    timezone = "America/Los_Angeles"
    city = "hollywood"
