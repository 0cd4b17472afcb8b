"""Serializers for staff management."""

from __future__ import annotations

from typing import Any

from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.catalog.models import Service

from .models import Staff, StaffSchedule, StaffService


class StaffScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = StaffSchedule
        fields = ["id", "day_of_week", "start_time", "end_time", "is_active"]
        read_only_fields = ["id"]

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if attrs["end_time"] <= attrs["start_time"]:
            raise serializers.ValidationError({"end_time": "End time must be after start time."})
        return attrs


class StaffServiceBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ["id", "name", "price", "duration"]


class StaffPublicSerializer(serializers.ModelSerializer):
    """Staff card shown on a business page."""

    class Meta:
        model = Staff
        fields = ["id", "name", "bio", "avatar_url", "role"]


class StaffSerializer(serializers.ModelSerializer):
    """
    Staff read/write serializer.

    ``service_ids`` replaces the assignments and a nested ``schedule`` replaces
    the weekly hours whenever they are submitted.
    """

    services = StaffServiceBriefSerializer(many=True, read_only=True)
    service_ids = serializers.ListField(child=serializers.IntegerField(), write_only=True, required=False)
    schedule = StaffScheduleSerializer(many=True, required=False)

    class Meta:
        model = Staff
        fields = [
            "id",
            "business",
            "user",
            "name",
            "email",
            "phone",
            "bio",
            "avatar_url",
            "role",
            "can_manage_bookings",
            "can_manage_staff",
            "is_active",
            "services",
            "service_ids",
            "schedule",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "business", "user", "created_at", "updated_at"]
        validators: list = []

    def _business(self):
        if self.instance is not None:
            return self.instance.business
        return self.context["business"]

    def validate_email(self, value: str) -> str:
        qs = Staff.objects.filter(business=self._business(), email__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("A staff member with this email already exists")
        return value.lower()

    def validate_service_ids(self, value: list[int]) -> list[int]:
        ids = set(value)
        found = Service.objects.filter(business=self._business(), id__in=ids).count()
        if found != len(ids):
            raise serializers.ValidationError("One or more services do not belong to this business.")
        return list(ids)

    def _replace_relations(self, staff: Staff, service_ids, schedule) -> None:  # type: ignore
        if service_ids is not None:
            StaffService.objects.filter(staff=staff).delete()
            StaffService.objects.bulk_create(
                [StaffService(staff=staff, service_id=service_id) for service_id in service_ids]
            )
        if schedule is not None:
            StaffSchedule.objects.filter(staff=staff).delete()
            StaffSchedule.objects.bulk_create([StaffSchedule(staff=staff, **row) for row in schedule])

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]) -> Staff:
        service_ids = validated_data.pop("service_ids", None)
        schedule = validated_data.pop("schedule", None)
        staff = Staff.objects.create(business=self.context["business"], **validated_data)
        self._replace_relations(staff, service_ids, schedule)
        return staff

    @transaction.atomic
    def update(self, instance: Staff, validated_data: dict[str, Any]) -> Staff:
        service_ids = validated_data.pop("service_ids", None)
        schedule = validated_data.pop("schedule", None)
        for field, value in validated_data.items():
            setattr(instance, field, value)
        instance.save()
        self._replace_relations(instance, service_ids, schedule)
        return instance
