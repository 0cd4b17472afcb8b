"""Staff models."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.businesses.models import Availability, Business
from apps.catalog.models import Service


class Staff(models.Model):
    """Person who performs services at a business."""

    class Role(models.TextChoices):
        OWNER = "OWNER", _("Owner")
        MANAGER = "MANAGER", _("Manager")
        STAFF = "STAFF", _("Staff")

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="staff")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="staff_memberships",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)
    bio = models.TextField(blank=True)
    avatar_url = models.URLField(max_length=500, blank=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.STAFF)
    can_manage_bookings = models.BooleanField(default=False)
    can_manage_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    services = models.ManyToManyField(Service, through="StaffService", related_name="staff", blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Staff member")
        verbose_name_plural = _("Staff members")
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["business", "email"], name="staff_unique_email_per_business"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_role_display()})"


class StaffService(models.Model):
    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name="service_assignments")
    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name="staff_assignments")

    class Meta:
        verbose_name = _("Staff service")
        verbose_name_plural = _("Staff services")
        constraints = [
            models.UniqueConstraint(fields=["staff", "service"], name="staff_service_unique_pair"),
        ]

    def __str__(self) -> str:
        return f"{self.staff_id} -> {self.service_id}"


class StaffSchedule(models.Model):
    """Weekly working hours of a staff member (0=Sunday)."""

    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name="schedule")
    day_of_week = models.PositiveSmallIntegerField(choices=Availability.Weekday.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = _("Staff schedule")
        verbose_name_plural = _("Staff schedules")
        ordering = ["day_of_week", "start_time"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="staff_schedule_valid_hours",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.staff_id} day {self.day_of_week} {self.start_time:%H:%M}-{self.end_time:%H:%M}"
