from __future__ import annotations

from datetime import date
from unittest import mock

import pytest
from django.test import override_settings

from apps.businesses.models import Availability, Business
from apps.businesses.services import GeocodingError, calculate_distance, geocode_address
from apps.businesses.tasks import geocode_missing_businesses
from shared.testing import make_business


def test_distance_between_same_point_is_zero():
    assert calculate_distance(40.7128, -74.0060, 40.7128, -74.0060) == 0


def test_distance_new_york_to_boston():
    assert calculate_distance(40.7128, -74.0060, 42.3601, -71.0589) == pytest.approx(306, abs=2)


def test_weekday_for_is_sunday_based():
    assert Availability.weekday_for(date(2026, 10, 18)) == Availability.Weekday.SUNDAY
    assert Availability.weekday_for(date(2026, 10, 24)) == Availability.Weekday.SATURDAY


@override_settings(MAPBOX_ACCESS_TOKEN="")
def test_geocode_requires_token():
    with pytest.raises(GeocodingError):
        geocode_address("12 Main St", "Brooklyn", "NY", "11201")


@pytest.mark.django_db
@override_settings(MAPBOX_ACCESS_TOKEN="pk.test")
def test_geocode_task_counts_failures():
    located = make_business(business_name="Located")
    missing = make_business(business_name="Nowhere")
    Business.objects.filter(pk=located.pk).update(latitude=1.0, longitude=1.0)

    with mock.patch("apps.businesses.services.requests.get") as requests_get:
        requests_get.return_value.json.return_value = {"features": []}
        result = geocode_missing_businesses(pause_seconds=0)

    assert result == {"geocoded": 0, "failed": 1}
    assert requests_get.call_count == 1
    missing.refresh_from_db()
    assert missing.latitude is None
