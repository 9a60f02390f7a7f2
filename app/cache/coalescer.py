"""
Request coalescing to prevent duplicate upstream API calls.

When multiple concurrent coroutines ask for the same data, only one
upstream call is made and all requesters share the result.
"""
import asyncio
import time
import logging
from typing import Dict, Callable, Any, Awaitable
from dataclasses import dataclass, field

from .core import resolve

logger = logging.getLogger("cache.coalescer")


def _retrieve_exception(task: "asyncio.Task[Any]") -> None:
    # Waiters may all have been cancelled; _run already logged the failure
    if not task.cancelled():
        task.exception()


@dataclass
class InFlightRequest:
    """Tracks an in-progress upstream request."""
    task: "asyncio.Task[Any]"
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one upstream call.

    Pattern:
    - First request for a key registers a task that runs the fetch
    - Subsequent requests for the same key await that same task
    - When the task settles, every waiter receives the same result or exception
    - The key is unregistered inside the task itself, on every exit path,
      so a failed fetch never blocks the next attempt

    The registry is per-instance and per-process; it does not deduplicate
    across processes.

    Waiters await the task through asyncio.shield, so cancelling one caller
    never cancels a fetch other callers are waiting on.

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="parcasterix:v2:getAttractionData:[]",
            fetch_fn=lambda: load_attractions(),
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._stats = {
            "initiated": 0,
            "coalesced": 0,
            "failed": 0,
        }

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Zero-argument callable returning the value or an awaitable of it

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            Exception: Any error from fetch_fn is propagated to every waiter
        """
        # No await between the lookup and the insert below
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None:
            in_flight.waiter_count += 1
            self._stats["coalesced"] += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count})"
            )
        else:
            task = asyncio.ensure_future(self._run(cache_key, fetch_fn))
            task.add_done_callback(_retrieve_exception)
            in_flight = InFlightRequest(task=task)
            self._in_flight[cache_key] = in_flight
            self._stats["initiated"] += 1
            logger.debug(f"Initiating fetch for {cache_key}")

        return await asyncio.shield(in_flight.task)

    async def _run(self, cache_key: str, fetch_fn: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await resolve(fetch_fn())
        except Exception as e:
            self._stats["failed"] += 1
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            raise
        finally:
            # Clean up before waiters are woken so they can retry immediately
            current = self._in_flight.get(cache_key)
            if current is not None and current.task is asyncio.current_task():
                del self._in_flight[cache_key]

    def is_in_flight(self, cache_key: str) -> bool:
        """Whether a fetch for cache_key is currently running."""
        return cache_key in self._in_flight

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
            **self._stats,
        }
