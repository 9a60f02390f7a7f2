"""
TTL resolution and per-category TTL configuration.

All durations handled here are in milliseconds.
"""
import math
from enum import Enum
from numbers import Real
from typing import Any, Callable, Dict, Optional, Union

from .core import DEFAULT_TTL_MS, resolve
from .errors import InvalidTTLError

# A literal duration, or a zero-argument callable (sync or async) returning one
TTL = Union[int, float, Callable[[], Any]]


class DataCategory(Enum):
    """Categories of vendor data with different freshness needs."""
    LIVE_DATA = "live_data"              # wait times, ride status
    SHOW_TIMES = "show_times"            # today's performance schedule
    SCHEDULE = "schedule"                # park opening calendars
    STATIC_METADATA = "static_metadata"  # attraction lists, park configuration


def minutes(value: float) -> int:
    """Convert minutes to milliseconds."""
    return int(value * 60_000)


# TTL configuration by category (in milliseconds)
TTL_CONFIG: Dict[DataCategory, int] = {
    DataCategory.LIVE_DATA: minutes(1),
    DataCategory.SHOW_TIMES: minutes(360),
    DataCategory.SCHEDULE: minutes(360),
    DataCategory.STATIC_METADATA: minutes(360),
}


def get_ttl_for_category(category: DataCategory) -> int:
    """
    Get the TTL for a data category.

    Unknown categories fall back to the default one hour TTL.
    """
    return TTL_CONFIG.get(category, DEFAULT_TTL_MS)


def _validate(value: Any) -> Union[int, float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidTTLError(f"TTL must be a number of milliseconds, got {value!r}")
    if math.isnan(value) or value < 0:
        raise InvalidTTLError(f"TTL must be non-negative, got {value!r}")
    return value


async def resolve_ttl(ttl: Optional[TTL] = None) -> Union[int, float]:
    """
    Resolve a TTL into a concrete duration in milliseconds.

    Args:
        ttl: Milliseconds, a callable returning milliseconds (may be a coroutine
            function), or None for the default of one hour

    Returns:
        The validated duration

    Raises:
        InvalidTTLError: If the resolved value is not a non-negative number
        Exception: Anything raised by a deferred TTL computation is propagated
    """
    if ttl is None:
        return DEFAULT_TTL_MS
    if callable(ttl):
        ttl = await resolve(ttl())
    return _validate(ttl)
