from django.contrib import admin  # type: ignore

from .models import Staff, StaffSchedule, StaffService


class StaffServiceInline(admin.TabularInline):
    model = StaffService
    extra = 0


class StaffScheduleInline(admin.TabularInline):
    model = StaffSchedule
    extra = 0


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "business", "role", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("name", "email", "business__business_name")
    inlines = [StaffServiceInline, StaffScheduleInline]
