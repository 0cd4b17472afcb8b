"""URL configuration for Glamfric project.

The `urlpatterns` list routes URLs to views. It includes both Django admin
and application‑level routers provided by Django Rest Framework and each app.
"""
from django.contrib import admin  # type: ignore
from django.urls import path, include  # type: ignore
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView  # type: ignore

# API versioning. v1 is our initial version; future versions can be added here.

urlpatterns = [
    path('admin/', admin.site.urls),
    # API schema and docs
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    # Application URLs
    path('api/v1/auth/', include(('apps.users.auth_urls', 'auth'), namespace='auth')),
    path('api/v1/users/', include('apps.users.urls')),
    path('api/v1/businesses/', include('apps.businesses.urls')),
    path('api/v1/catalog/', include('apps.catalog.urls')),
    path('api/v1/staff/', include('apps.staff.urls')),
    path('api/v1/bookings/', include('apps.bookings.urls')),
    path('api/v1/payments/', include('apps.payments.urls')),
    path('api/v1/orders/', include('apps.orders.urls')),
    path('api/v1/promotions/', include('apps.promotions.urls')),
    path('api/v1/reviews/', include('apps.reviews.urls')),
    path('api/v1/customers/', include('apps.customers.urls')),
    path('api/v1/notifications/', include('apps.notifications.urls')),
    path('api/v1/analytics/', include('apps.analytics.urls')),
]
