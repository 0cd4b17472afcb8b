"""URL routing for analytics endpoints."""

from django.urls import path  # type: ignore

from .views import BusinessAnalyticsView, OverviewAnalyticsView


urlpatterns = [
    path('business/', BusinessAnalyticsView.as_view(), name='analytics-business'),
    path('overview/', OverviewAnalyticsView.as_view(), name='analytics-overview'),
]
