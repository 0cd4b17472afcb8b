"""Serializers for the CRM endpoints."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.serializers import BookingSerializer
from apps.users.serializers import UserShortSerializer

from .models import Communication, CustomerProfile


class CommunicationSerializer(serializers.ModelSerializer):
    staff_name = serializers.ReadOnlyField(source="staff.name", default=None)

    class Meta:
        model = Communication
        fields = ["id", "type", "subject", "content", "status", "staff", "staff_name", "sent_at", "created_at"]
        read_only_fields = ["id", "status", "staff_name", "sent_at", "created_at"]

    def validate_staff(self, value):  # type: ignore
        business = self.context["business"]
        if value is not None and value.business_id != business.id:
            raise serializers.ValidationError("Staff member does not belong to this business.")
        return value


class CustomerProfileSerializer(serializers.ModelSerializer):
    user = UserShortSerializer(read_only=True)
    favorite_service_name = serializers.ReadOnlyField(source="favorite_service.name", default=None)

    class Meta:
        model = CustomerProfile
        fields = [
            "id",
            "user",
            "total_visits",
            "total_spent",
            "average_spent",
            "first_visit",
            "last_visit",
            "favorite_service",
            "favorite_service_name",
            "tags",
            "notes",
            "is_vip",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "user",
            "total_visits",
            "total_spent",
            "average_spent",
            "first_visit",
            "last_visit",
            "favorite_service",
            "favorite_service_name",
            "created_at",
            "updated_at",
        ]

    def validate_tags(self, value):  # type: ignore
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError("Tags must be a list of strings.")
        return [tag.strip() for tag in value if tag.strip()]


class CustomerProfileDetailSerializer(CustomerProfileSerializer):
    communications = CommunicationSerializer(many=True, read_only=True)
    bookings = serializers.SerializerMethodField()

    class Meta(CustomerProfileSerializer.Meta):
        fields = CustomerProfileSerializer.Meta.fields + ["communications", "bookings"]

    def get_bookings(self, obj: CustomerProfile):  # type: ignore
        bookings = (
            obj.user.bookings.filter(business_id=obj.business_id)
            .select_related("customer", "business", "service", "staff")
            .order_by("-start_time")
        )
        return BookingSerializer(bookings, many=True).data
