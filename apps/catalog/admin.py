from django.contrib import admin  # type: ignore

from .models import InventoryLog, Product, ProductCategory, Service


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "business", "price", "duration", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "business__business_name")


@admin.register(ProductCategory)
class ProductCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "business", "slug")
    search_fields = ("name",)


class InventoryLogInline(admin.TabularInline):
    model = InventoryLog
    extra = 0
    readonly_fields = ("type", "quantity", "reason", "reference", "created_at")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "business", "sku", "price", "quantity", "is_active", "is_featured")
    list_filter = ("is_active", "is_featured", "track_inventory")
    search_fields = ("name", "sku", "barcode", "brand")
    inlines = [InventoryLogInline]
