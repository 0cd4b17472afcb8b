"""Serializers for user-related API endpoints."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import serializers  # type: ignore

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Main user serializer."""

    display_name = serializers.ReadOnlyField()
    business_id = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "display_name",
            "first_name",
            "last_name",
            "phone",
            "role",
            "avatar",
            "business_id",
            "is_email_verified",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "email",
            "role",
            "is_email_verified",
            "created_at",
            "updated_at",
        ]

    def get_business_id(self, obj) -> int | None:  # type: ignore
        business = getattr(obj, "business", None)
        return business.id if business is not None else None


class UserShortSerializer(serializers.ModelSerializer):
    """Compact user representation nested in bookings, reviews and CRM."""

    display_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = ["id", "email", "display_name", "phone"]
