"""API views for analytics."""

from __future__ import annotations

from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.businesses.services import get_owned_business
from apps.users.permissions import IsBusinessOwner, IsPlatformAdmin

from .services import business_analytics, platform_overview


class BusinessAnalyticsView(APIView):
    """Revenue and booking dashboard for the owner's business."""

    permission_classes = [IsBusinessOwner]

    def get(self, request, format=None):  # type: ignore
        return Response(business_analytics(get_owned_business(request.user)))


class OverviewAnalyticsView(APIView):
    """Platform-wide totals for administrators."""

    permission_classes = [IsPlatformAdmin]

    def get(self, request, format=None):  # type: ignore
        return Response(platform_overview())
