"""URL declarations for the businesses app."""

from __future__ import annotations

from django.urls import path, include  # type: ignore
from rest_framework.routers import DefaultRouter, SimpleRouter  # type: ignore

from .views import (
    BusinessHoursView,
    BusinessPhotoViewSet,
    BusinessViewSet,
    ClosedDatesView,
    GeocodeBusinessView,
    PresignedUploadView,
    TimeOffViewSet,
    UploadCompleteView,
)

owner_router = SimpleRouter()
owner_router.register(r'time-off', TimeOffViewSet, basename='time-off')
owner_router.register(r'photos', BusinessPhotoViewSet, basename='business-photo')

router = DefaultRouter()
router.register(r'', BusinessViewSet, basename='business')

# Explicit paths come first so the slug route does not swallow them.
urlpatterns = [
    path('me/hours/', BusinessHoursView.as_view(), name='business-hours'),
    path('me/geocode/', GeocodeBusinessView.as_view(), name='business-geocode'),
    path('me/uploads/presigned-url/', PresignedUploadView.as_view(), name='upload-presigned-url'),
    path('me/uploads/complete/', UploadCompleteView.as_view(), name='upload-complete'),
    path('me/', include(owner_router.urls)),
    path('<int:business_id>/closed-dates/', ClosedDatesView.as_view(), name='business-closed-dates'),
    path('', include(router.urls)),
]
