from django.contrib import admin  # type: ignore

from .models import Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("id", "business", "user", "rating", "is_approved", "created_at")
    list_filter = ("is_approved", "rating")
    search_fields = ("business__business_name", "user__email", "comment")
    actions = ["approve", "hide"]

    @admin.action(description="Approve selected reviews")
    def approve(self, request, queryset):  # type: ignore
        queryset.update(is_approved=True)

    @admin.action(description="Hide selected reviews")
    def hide(self, request, queryset):  # type: ignore
        queryset.update(is_approved=False)
