"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.users.serializers import UserShortSerializer

from .models import Booking


class BookingCreateSerializer(serializers.Serializer):
    """Customer request for a slot. Payment is collected through the returned client secret."""

    business_id = serializers.IntegerField()
    service_id = serializers.IntegerField()
    date = serializers.DateField(input_formats=["%Y-%m-%d"])
    time = serializers.TimeField(input_formats=["%H:%M", "%H:%M:%S"])
    staff_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AvailabilityQuerySerializer(serializers.Serializer):
    business_id = serializers.IntegerField()
    date = serializers.DateField(input_formats=["%Y-%m-%d"])
    service_id = serializers.IntegerField(required=False)


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)


class BookingSerializer(serializers.ModelSerializer):
    """Booking as seen by the customer, the business and staff."""

    customer = UserShortSerializer(read_only=True)
    business_id = serializers.ReadOnlyField(source="business.id")
    business_name = serializers.ReadOnlyField(source="business.business_name")
    business_slug = serializers.ReadOnlyField(source="business.slug")
    service_id = serializers.ReadOnlyField(source="service.id")
    service_name = serializers.ReadOnlyField(source="service.name")
    service_duration = serializers.ReadOnlyField(source="service.duration")
    staff_id = serializers.ReadOnlyField(source="staff.id", default=None)
    staff_name = serializers.ReadOnlyField(source="staff.name", default=None)
    has_review = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "customer",
            "business_id",
            "business_name",
            "business_slug",
            "service_id",
            "service_name",
            "service_duration",
            "staff_id",
            "staff_name",
            "date",
            "start_time",
            "end_time",
            "status",
            "payment_status",
            "total_price",
            "platform_fee",
            "stripe_fee",
            "business_payout",
            "notes",
            "cancelled_at",
            "has_review",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_has_review(self, obj: Booking) -> bool:
        return hasattr(obj, "review")
