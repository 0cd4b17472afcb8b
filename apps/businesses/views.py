"""Business API views: public listing and search, owner profile, hours, time off, photos, uploads."""

from __future__ import annotations

import logging

from django.db import transaction  # type: ignore
from django.db.models import Avg, FloatField, Q, Value  # type: ignore
from django.db.models.functions import Coalesce  # type: ignore
from django.shortcuts import get_object_or_404  # type: ignore
from django.utils import timezone  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.users.permissions import IsBusinessOwner
from shared.infrastructure.storage import (
    StorageError,
    UploadValidationError,
    create_presigned_upload,
    delete_object,
)

from .filters import BusinessFilterSet
from .models import Availability, Business, BusinessPhoto, TimeOff
from .serializers import (
    AvailabilitySerializer,
    BusinessDetailSerializer,
    BusinessPhotoSerializer,
    BusinessProfileSerializer,
    BusinessSerializer,
    PresignedUploadRequestSerializer,
    TimeOffSerializer,
    UploadCompleteSerializer,
)
from .services import GeocodingError, calculate_distance, get_owned_business, geocode_business

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADIUS_KM = 25


def _with_rating(queryset):  # type: ignore
    return queryset.annotate(
        average_rating=Coalesce(
            Avg("reviews__rating", filter=Q(reviews__is_approved=True)),
            Value(0.0),
            output_field=FloatField(),
        )
    )


class BusinessViewSet(viewsets.ReadOnlyModelViewSet):
    """Public business directory.

    - list: active businesses, filterable by city/state/category
    - retrieve: by slug, with services, staff, photos and rating
    - me: the owner's own profile (GET/PATCH)
    - search: free text, category, city and minimum rating
    """

    lookup_field = "slug"
    permission_classes = [permissions.AllowAny]
    filter_backends = [DjangoFilterBackend]
    filterset_class = BusinessFilterSet

    def get_queryset(self):  # type: ignore
        return _with_rating(Business.objects.filter(is_active=True))

    def get_serializer_class(self):  # type: ignore
        if self.action == "retrieve":
            return BusinessDetailSerializer
        return BusinessSerializer

    @action(detail=False, methods=["get", "patch"], permission_classes=[IsBusinessOwner])
    def me(self, request):
        business = get_owned_business(request.user, active_only=False)
        if request.method == "GET":
            return Response(BusinessProfileSerializer(business).data)

        serializer = BusinessProfileSerializer(business, data=request.data, partial=True)
        missing = serializer.missing_required_field()
        if missing:
            return Response({"detail": f"{missing} is required"}, status=status.HTTP_400_BAD_REQUEST)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Business {business.id} profile updated by user {request.user.id}")
        return Response(serializer.data)

    @action(detail=False, methods=["get"])
    def search(self, request):
        """Search active businesses; results are sorted by average rating."""
        params = request.query_params
        qs = Business.objects.filter(is_active=True)

        q = (params.get("q") or "").strip()
        if q:
            from apps.catalog.models import Service

            matching_services = Service.objects.filter(name__icontains=q, is_active=True).values("business_id")
            qs = qs.filter(
                Q(business_name__icontains=q) | Q(description__icontains=q) | Q(id__in=matching_services)
            )

        category = params.get("category")
        if category:
            qs = qs.filter(category=category)

        city = params.get("city")
        if city:
            qs = qs.filter(city__icontains=city)

        qs = _with_rating(qs)
        min_rating = params.get("min_rating")
        if min_rating:
            try:
                qs = qs.filter(average_rating__gte=float(min_rating))
            except ValueError:
                return Response({"detail": "min_rating must be a number"}, status=status.HTTP_400_BAD_REQUEST)

        qs = qs.order_by("-average_rating", "business_name")

        lat, lng = params.get("lat"), params.get("lng")
        if lat and lng:
            try:
                origin = (float(lat), float(lng))
                radius_km = float(params.get("radius_km") or DEFAULT_SEARCH_RADIUS_KM)
            except ValueError:
                return Response({"detail": "lat, lng and radius_km must be numbers"}, status=status.HTTP_400_BAD_REQUEST)
            nearby = [
                business
                for business in qs
                if business.latitude is not None
                and business.longitude is not None
                and calculate_distance(*origin, business.latitude, business.longitude) <= radius_km
            ]
            return Response(BusinessSerializer(nearby, many=True).data)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(BusinessSerializer(page, many=True).data)
        return Response(BusinessSerializer(qs, many=True).data)


class BusinessHoursView(APIView):
    """Weekly opening hours of the owner's business. PUT replaces the whole week."""

    permission_classes = [IsBusinessOwner]

    def get(self, request):  # type: ignore
        business = get_owned_business(request.user)
        rows = Availability.objects.filter(business=business)
        return Response(AvailabilitySerializer(rows, many=True).data)

    def put(self, request):  # type: ignore
        business = get_owned_business(request.user)
        payload = request.data.get("availability", request.data) if isinstance(request.data, dict) else request.data
        serializer = AvailabilitySerializer(data=payload, many=True)
        serializer.is_valid(raise_exception=True)

        days = [row["day_of_week"] for row in serializer.validated_data]
        if len(days) != len(set(days)):
            return Response({"detail": "Each day can only appear once"}, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            Availability.objects.filter(business=business).delete()
            Availability.objects.bulk_create(
                [Availability(business=business, **row) for row in serializer.validated_data]
            )

        rows = Availability.objects.filter(business=business)
        return Response(AvailabilitySerializer(rows, many=True).data)


class TimeOffViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = TimeOffSerializer
    permission_classes = [IsBusinessOwner]

    def get_queryset(self):  # type: ignore
        return TimeOff.objects.filter(business__owner=self.request.user)

    def perform_create(self, serializer):  # type: ignore
        serializer.save(business=get_owned_business(self.request.user))


class ClosedDatesView(APIView):
    """Future full-day closures of a business, as YYYY-MM-DD strings."""

    permission_classes = [permissions.AllowAny]

    def get(self, request, business_id: int):  # type: ignore
        business = get_object_or_404(Business, pk=business_id, is_active=True)
        dates = (
            TimeOff.objects.filter(
                business=business,
                date__gte=timezone.localdate(),
                start_time__isnull=True,
                end_time__isnull=True,
            )
            .order_by("date")
            .values_list("date", flat=True)
            .distinct()
        )
        return Response({"dates": [d.isoformat() for d in dates]})


class BusinessPhotoViewSet(
    mixins.ListModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = BusinessPhotoSerializer
    permission_classes = [IsBusinessOwner]

    def get_queryset(self):  # type: ignore
        return BusinessPhoto.objects.filter(business__owner=self.request.user, is_active=True).order_by(
            "type", "order"
        )

    def perform_update(self, serializer):  # type: ignore
        with transaction.atomic():
            photo = serializer.save()
            photo.make_exclusive_hero()

    def perform_destroy(self, instance):  # type: ignore
        if instance.key and not delete_object(instance.key):
            logger.warning(f"S3 object {instance.key} was not removed for photo {instance.id}")
        instance.delete()


class PresignedUploadView(APIView):
    permission_classes = [IsBusinessOwner]

    def post(self, request):  # type: ignore
        business = get_owned_business(request.user)
        serializer = PresignedUploadRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            upload = create_presigned_upload(
                business.id,
                data["type"],
                data["filename"],
                data["content_type"],
                data.get("file_size"),
            )
        except UploadValidationError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StorageError as e:
            return Response({"detail": str(e)}, status=status.HTTP_502_BAD_GATEWAY)

        return Response({"upload_url": upload.upload_url, "key": upload.key, "url": upload.url})


class UploadCompleteView(APIView):
    permission_classes = [IsBusinessOwner]

    def post(self, request):  # type: ignore
        business = get_owned_business(request.user)
        serializer = UploadCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            photo = BusinessPhoto.objects.create(business=business, **serializer.validated_data)
            photo.make_exclusive_hero()
        return Response(BusinessPhotoSerializer(photo).data, status=status.HTTP_201_CREATED)


class GeocodeBusinessView(APIView):
    """Resolve the owner's address to coordinates (no-op when already known)."""

    permission_classes = [IsBusinessOwner]

    def post(self, request):  # type: ignore
        business = get_owned_business(request.user)
        try:
            geocode_business(business)
        except GeocodingError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"latitude": business.latitude, "longitude": business.longitude})
