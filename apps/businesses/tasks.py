"""Celery tasks for business listings."""

from __future__ import annotations

import logging
import time

from celery import shared_task  # type: ignore
from django.db.models import Q  # type: ignore

from .models import Business
from .services import GeocodingError, geocode_business

logger = logging.getLogger(__name__)

GEOCODE_BATCH_SIZE = 5


@shared_task(name="businesses.geocode_missing_businesses")
def geocode_missing_businesses(pause_seconds: float = 1.0) -> dict[str, int]:
    """
    Fill in coordinates for businesses that have none.

    Addresses are resolved in batches of five with a pause between batches
    to stay under the geocoding rate limit.

    Returns:
        dict: {"geocoded": ..., "failed": ...}
    """
    businesses = list(Business.objects.filter(Q(latitude__isnull=True) | Q(longitude__isnull=True)))
    geocoded = 0
    failed = 0

    for index, business in enumerate(businesses):
        if index and index % GEOCODE_BATCH_SIZE == 0 and pause_seconds:
            time.sleep(pause_seconds)
        try:
            geocode_business(business)
            geocoded += 1
        except GeocodingError as e:
            failed += 1
            logger.warning(f"Could not geocode business {business.id}: {e}")
        except Exception as e:
            failed += 1
            logger.error(f"Error geocoding business {business.id}: {e}", exc_info=True)

    if geocoded or failed:
        logger.info(f"Geocoding finished: {geocoded} geocoded, {failed} failed")

    return {"geocoded": geocoded, "failed": failed}
