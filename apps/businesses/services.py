"""Domain services for business listings: ownership lookup and geocoding."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from urllib.parse import quote

import requests
from django.conf import settings  # type: ignore
from rest_framework.exceptions import NotFound  # type: ignore

from .models import Business

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371


class GeocodingError(Exception):
    """Raised when an address cannot be resolved to coordinates."""


@dataclass(frozen=True)
class GeocodingResult:
    latitude: float
    longitude: float
    formatted_address: str


def get_owned_business(user, *, active_only: bool = True) -> Business:
    """Return the business owned by ``user`` or raise a 404 for the API layer."""
    qs = Business.objects.filter(owner_id=getattr(user, "id", None))
    if active_only:
        qs = qs.filter(is_active=True)
    business = qs.first()
    if business is None:
        raise NotFound("No active business found")
    return business


def geocode_address(address: str, city: str, state: str, zip_code: str) -> GeocodingResult:
    """Resolve a street address through the Mapbox Places API."""
    if not settings.MAPBOX_ACCESS_TOKEN:
        raise GeocodingError("Mapbox access token is not configured")

    full_address = f"{address}, {city}, {state} {zip_code}"
    url = f"{settings.MAPBOX_GEOCODING_URL}/{quote(full_address)}.json"
    try:
        response = requests.get(
            url,
            params={"access_token": settings.MAPBOX_ACCESS_TOKEN, "limit": 1},
            timeout=10,
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error(f"Geocoding request failed for '{full_address}': {exc}")
        raise GeocodingError("Geocoding service unavailable") from exc

    features = response.json().get("features") or []
    if not features:
        raise GeocodingError(f"No results for address '{full_address}'")

    longitude, latitude = features[0]["center"]
    return GeocodingResult(
        latitude=latitude,
        longitude=longitude,
        formatted_address=features[0].get("place_name", full_address),
    )


def geocode_business(business: Business, *, force: bool = False) -> Business:
    """Store coordinates on the business unless they are already known."""
    if not force and business.latitude is not None and business.longitude is not None:
        return business

    result = geocode_address(business.address, business.city, business.state, business.zip_code)
    business.latitude = result.latitude
    business.longitude = result.longitude
    business.save(update_fields=["latitude", "longitude", "updated_at"])
    logger.info(f"Geocoded business {business.id}: {result.latitude}, {result.longitude}")
    return business


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
