"""Serializers for reviews.

The creating user comes from the request; business and staff are taken
from the booking in the view.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Review


class ReviewCreateSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField()
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default='', max_length=5000)


class ReviewSerializer(serializers.ModelSerializer):
    """Read serializer for reviews including related ids."""

    user_id = serializers.ReadOnlyField(source='user.id')
    user_name = serializers.ReadOnlyField(source='user.display_name')
    business_id = serializers.ReadOnlyField(source='business.id')
    business_name = serializers.ReadOnlyField(source='business.business_name')
    booking_id = serializers.ReadOnlyField(source='booking.id')
    service_name = serializers.ReadOnlyField(source='booking.service.name')
    staff_id = serializers.ReadOnlyField(source='staff.id', default=None)
    staff_name = serializers.ReadOnlyField(source='staff.name', default=None)

    class Meta:
        model = Review
        fields = [
            'id',
            'user_id',
            'user_name',
            'business_id',
            'business_name',
            'booking_id',
            'service_name',
            'staff_id',
            'staff_name',
            'rating',
            'comment',
            'business_response',
            'business_response_at',
            'is_approved',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class BusinessResponseSerializer(serializers.Serializer):
    business_response = serializers.CharField(max_length=2000)
