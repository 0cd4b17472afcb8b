from django.contrib import admin  # type: ignore

from .models import Promotion, PromotionUsage


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = ("name", "business", "code", "type", "value", "usage_count", "is_active", "end_date")
    list_filter = ("type", "scope", "is_active", "is_featured")
    search_fields = ("name", "code", "business__business_name")
    filter_horizontal = ("services", "products")


@admin.register(PromotionUsage)
class PromotionUsageAdmin(admin.ModelAdmin):
    list_display = ("promotion", "user", "discount_amount", "order_total", "created_at")
