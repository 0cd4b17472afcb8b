"""Serializers for business listings, hours, time off and photos."""

from __future__ import annotations

from typing import Any

from django.db.models import Avg  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.catalog.serializers import ServiceSerializer
from apps.staff.serializers import StaffPublicSerializer

from .models import Availability, Business, BusinessPhoto, TimeOff


class BusinessPhotoSerializer(serializers.ModelSerializer):
    class Meta:
        model = BusinessPhoto
        fields = ["id", "type", "url", "key", "caption", "order", "is_active", "created_at"]
        read_only_fields = ["id", "url", "key", "is_active", "created_at"]


class BusinessSerializer(serializers.ModelSerializer):
    """Business card used in lists, search results and signup responses."""

    average_rating = serializers.SerializerMethodField()
    can_accept_payments = serializers.ReadOnlyField()

    class Meta:
        model = Business
        fields = [
            "id",
            "business_name",
            "slug",
            "description",
            "category",
            "address",
            "city",
            "state",
            "zip_code",
            "latitude",
            "longitude",
            "phone",
            "email",
            "website",
            "instagram",
            "opening_hours",
            "is_verified",
            "is_active",
            "stripe_onboarded",
            "can_accept_payments",
            "average_rating",
            "created_at",
        ]
        read_only_fields = fields

    def get_average_rating(self, obj: Business) -> float:
        annotated = getattr(obj, "average_rating", None)
        if annotated is not None:
            return round(float(annotated), 2)
        value = obj.reviews.filter(is_approved=True).aggregate(avg=Avg("rating"))["avg"]
        return round(float(value), 2) if value is not None else 0.0


class BusinessDetailSerializer(BusinessSerializer):
    """Public business page: active services, active staff and photos."""

    services = serializers.SerializerMethodField()
    staff = serializers.SerializerMethodField()
    photos = serializers.SerializerMethodField()
    review_count = serializers.SerializerMethodField()

    class Meta(BusinessSerializer.Meta):
        fields = BusinessSerializer.Meta.fields + ["services", "staff", "photos", "review_count"]
        read_only_fields = fields

    def get_services(self, obj: Business):  # type: ignore
        return ServiceSerializer(obj.services.filter(is_active=True).order_by("name"), many=True).data

    def get_staff(self, obj: Business):  # type: ignore
        return StaffPublicSerializer(obj.staff.filter(is_active=True), many=True).data

    def get_photos(self, obj: Business):  # type: ignore
        return BusinessPhotoSerializer(obj.photos.filter(is_active=True), many=True).data

    def get_review_count(self, obj: Business) -> int:
        return obj.reviews.filter(is_approved=True).count()


class BusinessProfileSerializer(serializers.ModelSerializer):
    """Owner-editable profile. Core listing fields must always be sent."""

    REQUIRED_FIELDS = ("business_name", "category", "address", "city", "state", "zip_code", "phone")

    class Meta:
        model = Business
        fields = [
            "id",
            "business_name",
            "slug",
            "description",
            "category",
            "address",
            "city",
            "state",
            "zip_code",
            "latitude",
            "longitude",
            "phone",
            "email",
            "website",
            "instagram",
            "opening_hours",
            "is_verified",
            "is_active",
            "stripe_account_id",
            "stripe_onboarded",
            "commission_rate",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "slug",
            "latitude",
            "longitude",
            "is_verified",
            "is_active",
            "stripe_account_id",
            "stripe_onboarded",
            "commission_rate",
            "created_at",
            "updated_at",
        ]

    def missing_required_field(self) -> str | None:
        for field in self.REQUIRED_FIELDS:
            if not self.initial_data.get(field):
                return field
        return None

    def update(self, instance: Business, validated_data: dict[str, Any]) -> Business:
        address_fields = ("address", "city", "state", "zip_code")
        if any(validated_data.get(f, getattr(instance, f)) != getattr(instance, f) for f in address_fields):
            # Stale coordinates; geocode_missing_businesses picks them up again.
            validated_data["latitude"] = None
            validated_data["longitude"] = None
        return super().update(instance, validated_data)


class AvailabilitySerializer(serializers.ModelSerializer):
    class Meta:
        model = Availability
        fields = ["id", "day_of_week", "start_time", "end_time", "is_active"]
        read_only_fields = ["id"]
        validators: list = []

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if attrs["end_time"] <= attrs["start_time"]:
            raise serializers.ValidationError({"end_time": "End time must be after start time."})
        return attrs


class TimeOffSerializer(serializers.ModelSerializer):
    is_full_day = serializers.ReadOnlyField()

    class Meta:
        model = TimeOff
        fields = ["id", "date", "start_time", "end_time", "reason", "is_full_day", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        start, end = attrs.get("start_time"), attrs.get("end_time")
        if (start is None) != (end is None):
            raise serializers.ValidationError("Provide both start and end time, or neither for a full day.")
        if start is not None and end <= start:
            raise serializers.ValidationError({"end_time": "End time must be after start time."})
        return attrs


class PresignedUploadRequestSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=BusinessPhoto.PhotoType.choices, default=BusinessPhoto.PhotoType.GALLERY)
    filename = serializers.CharField(max_length=255)
    content_type = serializers.CharField(max_length=100)
    file_size = serializers.IntegerField(required=False, min_value=1)


class UploadCompleteSerializer(serializers.Serializer):
    url = serializers.URLField(max_length=500)
    key = serializers.CharField(max_length=500)
    type = serializers.ChoiceField(choices=BusinessPhoto.PhotoType.choices, default=BusinessPhoto.PhotoType.GALLERY)
    caption = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    order = serializers.IntegerField(required=False, min_value=0, default=0)
