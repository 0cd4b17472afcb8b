"""URL routing for notifications."""

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import (
    NotificationSettingsView,
    NotificationTemplateView,
    NotificationTriggerView,
    NotificationViewSet,
    TestNotificationView,
)

router = DefaultRouter()
router.register(r'', NotificationViewSet, basename='notification')

urlpatterns = [
    path('settings/', NotificationSettingsView.as_view(), name='notification-settings'),
    path('templates/', NotificationTemplateView.as_view(), name='notification-templates'),
    path('triggers/', NotificationTriggerView.as_view(), name='notification-triggers'),
    path('test/', TestNotificationView.as_view(), name='notification-test'),
    path('', include(router.urls)),
]
