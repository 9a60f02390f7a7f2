"""
Base class for destination adapters.

An adapter fetches raw vendor data over HTTP, caches it through the shared
CacheManager, and maps it into entity dictionaries.
"""
import asyncio
import functools
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import requests
from dotenv import load_dotenv
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.cache import CacheManager, DataCategory, get_cache_manager, get_ttl_for_category
from app.cache import ttl_policies
from config.settings import settings

from .park_types import EntityType

load_dotenv()

logger = logging.getLogger("parks.destination")

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_transient(exc: BaseException) -> bool:
    """Connection problems, timeouts and overloaded upstreams are worth retrying."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code in RETRYABLE_STATUS
    return False


def cached(
    minutes: Optional[float] = None,
    category: Optional[DataCategory] = None,
) -> Callable:
    """
    Cache an async adapter method through the destination's cache.wrap().

    The key combines the destination's cache prefix, the method name and its
    JSON-encoded positional arguments.

    Usage:
        @cached(minutes=360)
        async def get_attraction_data(self):
            ...

    Args:
        minutes: TTL in minutes
        category: Take the TTL from the category table instead
    """
    if (minutes is None) == (category is None):
        raise TypeError("cached() needs exactly one of minutes or category")
    if minutes is not None:
        ttl = ttl_policies.minutes(minutes)
    else:
        ttl = get_ttl_for_category(category)

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args):
            key = f"{self.cache_prefix}:{func.__name__}:{json.dumps(args, default=str)}"
            return await self.cache.wrap(key, lambda: func(self, *args), ttl)

        wrapper.cache_ttl = ttl
        return wrapper

    return decorator


class Destination:
    """
    Base destination adapter.

    Subclasses set slug/name/timezone and implement the build_* methods.
    Bump cache_version to orphan every key cached by a previous version.
    """

    slug: str = ""
    name: str = ""
    timezone: str = "UTC"
    cache_version: int = 1

    # Backoff between HTTP retries
    retry_wait = wait_exponential(multiplier=1, min=1, max=10)

    def __init__(
        self,
        cache: Optional[CacheManager] = None,
        request_timeout: Optional[int] = None,
        retry_attempts: Optional[int] = None,
    ):
        self.cache = cache if cache is not None else get_cache_manager()
        self.request_timeout = request_timeout or settings.request_timeout
        self.retry_attempts = retry_attempts or settings.http_retry_attempts

    @property
    def cache_prefix(self) -> str:
        return f"{self.slug}:v{self.cache_version}"

    # =========================================================================
    # HTTP
    # =========================================================================

    def build_headers(self) -> Dict[str, str]:
        """Headers sent with every request. Override to inject auth."""
        return {"Accept": "application/json"}

    async def http(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """
        Make an HTTP request in a worker thread, retrying transient failures.

        Raises:
            requests.RequestException: When the request fails for good
        """
        merged_headers = {**self.build_headers(), **(headers or {})}
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        return await asyncio.to_thread(
            retrying, self._send, method, url, params, json, merged_headers
        )

    def _send(self, method, url, params, json_body, headers) -> requests.Response:
        logger.debug(f"{self.slug} {method} {url}")
        try:
            response = requests.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.request_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"{self.slug} request failed: {method} {url}: {e}")
            raise
        return response

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def build_base_entity_object(self, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Fields every entity of this destination starts with."""
        return {"timezone": self.timezone}

    def _missing(self, method: str):
        return NotImplementedError(f"{method}() needs an implementation in {type(self).__name__}")

    async def build_destination_entity(self) -> Dict[str, Any]:
        raise self._missing("build_destination_entity")

    async def build_park_entities(self) -> List[Dict[str, Any]]:
        raise self._missing("build_park_entities")

    async def build_attraction_entities(self) -> List[Dict[str, Any]]:
        raise self._missing("build_attraction_entities")

    async def build_show_entities(self) -> List[Dict[str, Any]]:
        return []

    async def build_restaurant_entities(self) -> List[Dict[str, Any]]:
        return []

    async def build_entity_live_data(self) -> List[Dict[str, Any]]:
        raise self._missing("build_entity_live_data")

    async def build_entity_schedule_data(self) -> List[Dict[str, Any]]:
        raise self._missing("build_entity_schedule_data")

    async def get_all_entities(self) -> List[Dict[str, Any]]:
        """
        Get every entity belonging to this destination.

        Child entities are tagged with the destination's _id.
        """
        destination = await self.build_destination_entity()
        children = await asyncio.gather(
            self.build_park_entities(),
            self.build_attraction_entities(),
            self.build_show_entities(),
            self.build_restaurant_entities(),
        )

        entities = [destination]
        for group in children:
            for entity in group:
                entities.append({"_destinationId": destination["_id"], **entity})
        return entities

    async def get_entities_by_type(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        """Get all entities of one type."""
        entities = await self.get_all_entities()
        return [e for e in entities if e.get("entityType") == entity_type]

    async def get_entity_live_data(self) -> List[Dict[str, Any]]:
        """Live status, queues and show times for this destination's entities."""
        return await self.build_entity_live_data()

    async def get_entity_schedule_data(self) -> List[Dict[str, Any]]:
        """Opening schedules for this destination's scheduled entities."""
        return await self.build_entity_schedule_data()
