from django.contrib import admin  # type: ignore

from .models import Availability, Business, BusinessPhoto, TimeOff


class AvailabilityInline(admin.TabularInline):
    model = Availability
    extra = 0


class BusinessPhotoInline(admin.TabularInline):
    model = BusinessPhoto
    extra = 0


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ("business_name", "owner", "category", "city", "is_verified", "is_active", "stripe_onboarded")
    list_filter = ("category", "is_verified", "is_active", "stripe_onboarded")
    search_fields = ("business_name", "city", "owner__email")
    prepopulated_fields = {"slug": ("business_name",)}
    inlines = [AvailabilityInline, BusinessPhotoInline]


@admin.register(TimeOff)
class TimeOffAdmin(admin.ModelAdmin):
    list_display = ("business", "date", "start_time", "end_time", "reason")
    list_filter = ("date",)
