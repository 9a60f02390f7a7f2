"""
Parc Asterix destination adapter (GraphQL API).
"""
import json
import logging
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from app.cache import DataCategory
from config.settings import settings

from .destination import Destination, cached
from .errors import DestinationConfigError, UpstreamError
from .park_types import AttractionType, EntityType, QueueType, ScheduleType, StatusType

logger = logging.getLogger("parks.parcasterix")

QUERIES = {
    "getConfiguration": (
        "query getConfiguration {\n  getConfiguration {\n    park_latitude\n"
        "    park_longitude\n    park_radius_meters\n    __typename\n  }\n}\n"
    ),
    "getAttractions": (
        "query getAttractions {\n  getAllAttractions {\n    drupal_id\n    title\n"
        "    experience\n    latitude\n    longitude\n    hasQueuingCut\n    universe\n"
        "    __typename\n  }\n}\n"
    ),
    "getSpectacles": (
        "query getSpectacles {\n  getAllShows {\n    drupal_id\n    title\n    latitude\n"
        "    longitude\n    __typename\n  }\n}\n"
    ),
    "attractionLatency": (
        "query attractionLatency {\n  paxLatencies {\n    drupalId\n    latency\n"
        "    openingTime\n    closingTime\n    isOpen\n    isTemporaryBlocked\n"
        "    __typename\n  }\n}\n"
    ),
    "spectaclesShowtime": (
        "query spectaclesShowtime {\n  paxSchedules {\n    drupalId\n    times {\n"
        "    at\n    endAt\n    startAt\n    }\n    __typename\n  }\n}\n"
    ),
    "getRestaurants": (
        "query getRestaurants {\n  getAllRestaurants {\n    drupal_id\n    title\n"
        "    type\n    kind\n    theme\n    with_terrace\n    summary\n    description\n"
        "    latitude\n    longitude\n    __typename\n  }\n}\n"
    ),
    "getCalendar": (
        "query getCalendar {\n  getCalendar {\n    date\n    openingTime\n"
        "    closingTime\n    __typename\n  }\n}\n"
    ),
}

# Used when the configuration query has no coordinates
DEFAULT_LATITUDE = 49.136750
DEFAULT_LONGITUDE = 2.573816


class ParcAsterix(Destination):
    """Parc Asterix, a single-park destination north of Paris."""

    slug = "parcasterix"
    name = "Parc Asterix"
    timezone = "Europe/Paris"
    # Bump when cached query results need wiping
    cache_version = 2
    park_id = "parcasterixpark"

    def __init__(
        self,
        api_base: Optional[str] = None,
        language: Optional[str] = None,
        **kwargs,
    ):
        self.api_base = api_base or settings.parcasterix_api_base
        if not self.api_base:
            raise DestinationConfigError("Missing apiBase for Parc Asterix")
        self.language = language or settings.parcasterix_language
        super().__init__(**kwargs)

    async def make_query(self, operation_name: str) -> Dict[str, Any]:
        """
        Run a GraphQL query against the park API.

        Raises:
            UpstreamError: If the response carries GraphQL errors
        """
        params = {
            "operationName": operation_name,
            "variables": json.dumps({"language": self.language}),
            "query": QUERIES[operation_name],
        }
        response = await self.http("GET", f"{self.api_base}graphql", params=params)
        body = response.json()

        errors = body.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else None
            logger.warning(f"{operation_name} returned errors: {errors}")
            if isinstance(first, dict) and first.get("message"):
                raise UpstreamError(self.slug, f"{operation_name} error: {first['message']}")
            raise UpstreamError(self.slug, f"{operation_name} error: {json.dumps(errors)}")
        return body

    # =========================================================================
    # RAW DATA (cached)
    # =========================================================================

    @cached(category=DataCategory.STATIC_METADATA)
    async def get_resort_data(self) -> Dict[str, Any]:
        return await self.make_query("getConfiguration")

    @cached(category=DataCategory.STATIC_METADATA)
    async def get_attraction_data(self) -> Dict[str, Any]:
        return await self.make_query("getAttractions")

    @cached(category=DataCategory.LIVE_DATA)
    async def get_wait_time_data(self) -> Dict[str, Any]:
        return await self.make_query("attractionLatency")

    @cached(category=DataCategory.SCHEDULE)
    async def get_calendar_data(self) -> Dict[str, Any]:
        return await self.make_query("getCalendar")

    @cached(category=DataCategory.STATIC_METADATA)
    async def get_restaurant_data(self) -> Dict[str, Any]:
        return await self.make_query("getRestaurants")

    @cached(category=DataCategory.STATIC_METADATA)
    async def get_show_data(self) -> Dict[str, Any]:
        return await self.make_query("getSpectacles")

    @cached(category=DataCategory.SHOW_TIMES)
    async def get_showtime_data(self) -> Dict[str, Any]:
        return await self.make_query("spectaclesShowtime")

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def build_base_entity_object(self, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        entity = super().build_base_entity_object(data)
        if data:
            entity["name"] = data.get("title")
            entity["_id"] = data.get("drupal_id")
            if data.get("latitude") and data.get("longitude"):
                entity["location"] = {
                    "latitude": data["latitude"],
                    "longitude": data["longitude"],
                }
            entity["fastPass"] = bool(data.get("hasQueuingCut"))
        return entity

    async def _park_location(self) -> Dict[str, float]:
        config = (await self.get_resort_data())["data"]["getConfiguration"]
        return {
            "latitude": config.get("park_latitude") or DEFAULT_LATITUDE,
            "longitude": config.get("park_longitude") or DEFAULT_LONGITUDE,
        }

    def _child_entity(self, data: Dict[str, Any], entity_type: EntityType) -> Dict[str, Any]:
        return {
            **self.build_base_entity_object(data),
            "entityType": entity_type,
            "_destinationId": self.slug,
            "_parentId": self.park_id,
            "_parkId": self.park_id,
        }

    async def build_destination_entity(self) -> Dict[str, Any]:
        return {
            **self.build_base_entity_object(),
            "_id": self.slug,
            "slug": self.slug,
            "name": self.name,
            "entityType": EntityType.DESTINATION,
            "location": await self._park_location(),
        }

    async def build_park_entities(self) -> List[Dict[str, Any]]:
        return [
            {
                **self.build_base_entity_object(),
                "_id": self.park_id,
                "_destinationId": self.slug,
                "_parentId": self.slug,
                "slug": "ParcAsterixPark",
                "name": self.name,
                "entityType": EntityType.PARK,
                "location": await self._park_location(),
            }
        ]

    async def build_attraction_entities(self) -> List[Dict[str, Any]]:
        data = await self.get_attraction_data()
        entities = []
        for item in data["data"]["getAllAttractions"]:
            if item.get("__typename") != "Attraction":
                continue
            entity = self._child_entity(item, EntityType.ATTRACTION)
            entity["attractionType"] = AttractionType.RIDE
            if entity.get("_id"):
                entities.append(entity)
        return entities

    async def build_show_entities(self) -> List[Dict[str, Any]]:
        data = await self.get_show_data()
        entities = [
            self._child_entity(item, EntityType.SHOW)
            for item in data["data"]["getAllShows"]
        ]
        return [e for e in entities if e.get("_id")]

    async def build_restaurant_entities(self) -> List[Dict[str, Any]]:
        data = await self.get_restaurant_data()
        entities = [
            self._child_entity(item, EntityType.RESTAURANT)
            for item in data["data"]["getAllRestaurants"]
            if item.get("__typename") == "Restaurant"
        ]
        return [e for e in entities if e.get("_id")]

    # =========================================================================
    # LIVE DATA & SCHEDULES
    # =========================================================================

    def _local_iso(self, day: date, clock_time: str) -> str:
        """ISO timestamp for a park-local date and HH:MM[:SS] time."""
        local = datetime.combine(day, time.fromisoformat(clock_time), tzinfo=ZoneInfo(self.timezone))
        return local.isoformat()

    def _today(self) -> date:
        return datetime.now(ZoneInfo(self.timezone)).date()

    async def build_entity_live_data(self) -> List[Dict[str, Any]]:
        latencies = await self.get_wait_time_data()

        live_data = []
        for item in latencies["data"]["paxLatencies"]:
            # Status comes from the booleans, not from the latency value
            if item.get("isOpen"):
                status = StatusType.OPERATING
            elif item.get("isTemporaryBlocked"):
                status = StatusType.DOWN
            else:
                status = StatusType.CLOSED

            live_data.append({
                "_id": item["drupalId"],
                "status": status,
                "queue": {QueueType.STANDBY: {"waitTime": item.get("latency")}},
            })

        shows = await self.get_showtime_data()
        today = self._today()
        for item in shows["data"]["paxSchedules"]:
            schedule = []
            for slot in item.get("times") or []:
                if slot.get("at"):
                    start = end = self._local_iso(today, slot["at"])
                else:
                    start = self._local_iso(today, slot["startAt"])
                    end = self._local_iso(today, slot["endAt"])
                schedule.append({
                    "type": ScheduleType.OPERATING,
                    "startTime": start,
                    "endTime": end,
                })

            live_data.append({
                "_id": item["drupalId"],
                "status": StatusType.OPERATING,
                "schedule": schedule,
            })

        return live_data

    async def build_entity_schedule_data(self) -> List[Dict[str, Any]]:
        calendar = await self.get_calendar_data()

        dates = []
        for day in calendar["data"]["getCalendar"]:
            day_date = date.fromisoformat(day["date"])
            dates.append({
                "date": day["date"],
                "type": ScheduleType.OPERATING,
                "openingTime": self._local_iso(day_date, day["openingTime"]),
                "closingTime": self._local_iso(day_date, day["closingTime"]),
            })

        return [{"_id": self.park_id, "schedule": dates}]
