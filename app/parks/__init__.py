"""
Destination adapters normalizing vendor theme-park data into entity dictionaries.
"""
from typing import Dict, Optional, Type

from .park_types import (
    AttractionType,
    EntityType,
    QueueType,
    ReturnTimeState,
    ScheduleType,
    StatusType,
)
from .errors import DestinationConfigError, UpstreamError
from .destination import Destination, cached
from .parcasterix import ParcAsterix
from .plopsaland import Plopsaland
from .universal import UniversalOrlando, UniversalResort, UniversalStudios

# All supported destinations, by slug
DESTINATIONS: Dict[str, Type[Destination]] = {
    ParcAsterix.slug: ParcAsterix,
    Plopsaland.slug: Plopsaland,
    UniversalOrlando.slug: UniversalOrlando,
    UniversalStudios.slug: UniversalStudios,
}

_instances: Dict[str, Destination] = {}


def get_destination(slug: str) -> Optional[Destination]:
    """
    Get the shared adapter instance for a destination slug.

    Returns:
        The adapter, or None for an unknown slug

    Raises:
        DestinationConfigError: If the destination is not configured
    """
    if slug not in _instances:
        destination_cls = DESTINATIONS.get(slug)
        if destination_cls is None:
            return None
        _instances[slug] = destination_cls()
    return _instances[slug]


__all__ = [
    # Types
    "AttractionType",
    "EntityType",
    "QueueType",
    "ReturnTimeState",
    "ScheduleType",
    "StatusType",
    # Errors
    "DestinationConfigError",
    "UpstreamError",
    # Adapters
    "Destination",
    "cached",
    "ParcAsterix",
    "Plopsaland",
    "UniversalResort",
    "UniversalOrlando",
    "UniversalStudios",
    "DESTINATIONS",
    "get_destination",
]
