"""Admin registrations for the users domain."""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import CustomUser, PasswordResetToken


@admin.register(CustomUser)
class CustomUserAdmin(BaseUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            _("Personal info"),
            {"fields": ("username", "first_name", "last_name", "phone", "avatar")},
        ),
        (_("Role and payments"), {"fields": ("role", "stripe_customer_id", "is_email_verified")}),
        (_("Security"), {"fields": ("failed_login_attempts", "locked_until")}),
        (
            _("Permissions"),
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
        (_("Important dates"), {"fields": ("last_login", "date_joined", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "email",
                    "password1",
                    "password2",
                    "first_name",
                    "last_name",
                    "phone",
                    "role",
                    "is_staff",
                    "is_superuser",
                ),
            },
        ),
    )
    list_display = ("email", "role", "phone", "is_active", "is_staff", "is_email_verified", "is_locked")
    list_filter = ("role", "is_active", "is_staff", "is_email_verified")
    search_fields = ("email", "phone", "first_name", "last_name")
    ordering = ("email",)
    readonly_fields = ("created_at", "updated_at", "date_joined")


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    list_display = ("user", "expires_at", "created_at")
    search_fields = ("user__email",)
    readonly_fields = ("token_hash",)
