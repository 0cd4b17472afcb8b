from django.contrib import admin  # type: ignore

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "quantity", "unit_price", "total")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "business", "customer", "status", "payment_status", "total", "created_at")
    list_filter = ("status", "payment_status", "fulfillment")
    search_fields = ("order_number", "customer__email", "business__business_name")
    inlines = [OrderItemInline]
