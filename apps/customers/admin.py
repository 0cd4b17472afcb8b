from django.contrib import admin  # type: ignore

from .models import Communication, CustomerProfile


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "business", "total_visits", "total_spent", "last_visit", "is_vip")
    list_filter = ("is_vip",)
    search_fields = ("user__email", "business__business_name")


@admin.register(Communication)
class CommunicationAdmin(admin.ModelAdmin):
    list_display = ("business", "customer", "type", "status", "subject", "created_at")
    list_filter = ("type", "status")
