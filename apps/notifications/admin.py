from django.contrib import admin  # type: ignore

from .models import Notification, NotificationSettings, NotificationTemplate, NotificationTrigger


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "title", "is_read", "created_at")
    list_filter = ("is_read",)


class NotificationTemplateInline(admin.TabularInline):
    model = NotificationTemplate
    extra = 0


class NotificationTriggerInline(admin.TabularInline):
    model = NotificationTrigger
    extra = 0


@admin.register(NotificationSettings)
class NotificationSettingsAdmin(admin.ModelAdmin):
    list_display = ("business", "email_enabled", "sms_enabled", "timezone", "quiet_hours_enabled")
    inlines = [NotificationTemplateInline, NotificationTriggerInline]
