"""
Theme Park Data - Main FastAPI Application
Vendor data normalized into entities, served through the two-tier cache
"""
import logging
from typing import Optional

import requests
from fastapi import FastAPI, HTTPException, Query

from app.cache import get_cache_manager
from app.parks import (
    DESTINATIONS,
    Destination,
    DestinationConfigError,
    EntityType,
    UpstreamError,
    get_destination,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("app.main")

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "Theme Park Data"

app = FastAPI(
    title=APP_NAME,
    description="Theme park entities, schedules and live wait times",
    version=APP_VERSION,
)


def _destination_or_error(slug: str) -> Destination:
    """Resolve a slug to its adapter, mapping failures to HTTP errors."""
    try:
        destination = get_destination(slug)
    except DestinationConfigError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if destination is None:
        raise HTTPException(status_code=404, detail=f"Unknown destination: {slug}")
    return destination


async def _call_upstream(coro):
    try:
        return await coro
    except (UpstreamError, requests.RequestException) as e:
        logger.error(f"Upstream failure: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "full": f"{APP_NAME} {APP_VERSION}",
    }


@app.get("/cache/stats")
def cache_stats():
    """Get cache statistics."""
    return get_cache_manager().get_stats()


@app.get("/cache/keys")
async def cache_keys(prefix: str = Query("", description="Only keys starting with this prefix")):
    """List cached keys from the backing store."""
    keys = await get_cache_manager().get_keys(prefix)
    return {"prefix": prefix, "count": len(keys), "keys": sorted(keys)}


@app.get("/destinations")
def list_destinations():
    """List supported destinations."""
    return [
        {"slug": slug, "name": destination_cls.name}
        for slug, destination_cls in DESTINATIONS.items()
    ]


@app.get("/destinations/{slug}/entities")
async def destination_entities(
    slug: str,
    entity_type: Optional[EntityType] = Query(None, alias="type", description="Filter by entity type"),
):
    """All entities of a destination, optionally filtered by type."""
    destination = _destination_or_error(slug)
    if entity_type is None:
        return await _call_upstream(destination.get_all_entities())
    return await _call_upstream(destination.get_entities_by_type(entity_type))


@app.get("/destinations/{slug}/live")
async def destination_live(slug: str):
    """Live status, wait times and show times."""
    destination = _destination_or_error(slug)
    return await _call_upstream(destination.get_entity_live_data())


@app.get("/destinations/{slug}/schedule")
async def destination_schedule(slug: str):
    """Opening schedules."""
    destination = _destination_or_error(slug)
    return await _call_upstream(destination.get_entity_schedule_data())
