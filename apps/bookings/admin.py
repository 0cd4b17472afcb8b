"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "business",
        "customer",
        "service",
        "start_time",
        "status",
        "payment_status",
        "total_price",
        "created_at",
    )
    list_filter = ("status", "payment_status", "date")
    search_fields = ("business__business_name", "customer__email", "stripe_payment_intent_id")
    readonly_fields = (
        "stripe_payment_intent_id",
        "platform_fee",
        "stripe_fee",
        "business_payout",
        "created_at",
        "updated_at",
    )
