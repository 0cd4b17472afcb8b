"""User domain models for Glamfric.

The marketplace distinguishes customers who book appointments, business
owners who run a listing, and platform administrators. Business owners are
plain users with a role; their business lives in ``apps.businesses``.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta
from typing import Any

from django.conf import settings  # type: ignore
from django.contrib.auth.models import AbstractUser, BaseUserManager  # type: ignore
from django.core.validators import RegexValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


PHONE_VALIDATOR = RegexValidator(
    regex=r"^\+?\d{7,15}$",
    message=_("Invalid phone number. Use the international format without spaces."),
)


class CustomUserManager(BaseUserManager):
    """User manager that uses email as the login."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str | None, **extra_fields: Any):
        if not email:
            raise ValueError("Email is required to create a user.")
        email = self.normalize_email(email)

        phone = extra_fields.get("phone")
        if phone:
            extra_fields["phone"] = self.normalize_phone(phone)
        else:
            extra_fields["phone"] = None

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email: str, password: str | None = None, **extra_fields: Any):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        extra_fields.setdefault("role", CustomUser.RoleChoices.CUSTOMER)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: str | None = None, **extra_fields: Any):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", CustomUser.RoleChoices.ADMIN)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_phone(phone: str) -> str:
        """Strip spaces, dashes and brackets so phones are stored uniformly."""
        return phone.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")


class CustomUser(AbstractUser):
    """Platform user with a role and payment/security attributes."""

    class RoleChoices(models.TextChoices):
        CUSTOMER = "CUSTOMER", _("Customer")
        BUSINESS_OWNER = "BUSINESS_OWNER", _("Business owner")
        ADMIN = "ADMIN", _("Administrator")

    username = models.CharField(
        _("Display name"),
        max_length=150,
        blank=True,
        help_text=_("Optional, shown in emails and on reviews."),
    )
    email = models.EmailField(_("Email"), unique=True)
    phone = models.CharField(
        _("Phone"),
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        validators=[PHONE_VALIDATOR],
    )
    role = models.CharField(
        _("Role"),
        max_length=20,
        choices=RoleChoices.choices,
        default=RoleChoices.CUSTOMER,
    )
    avatar = models.ImageField(_("Avatar"), upload_to="avatars/", blank=True, null=True)
    stripe_customer_id = models.CharField(max_length=64, blank=True)
    is_email_verified = models.BooleanField(_("Email verified"), default=False)
    failed_login_attempts = models.PositiveIntegerField(default=0)
    locked_until = models.DateTimeField(_("Locked until"), null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    class Meta:
        verbose_name = _("User")
        verbose_name_plural = _("Users")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.email} ({self.get_role_display()})"

    # --- Domain helpers -----------------------------------------------------
    @property
    def display_name(self) -> str:
        full_name = self.get_full_name()
        return self.username or full_name or self.email

    def is_customer(self) -> bool:
        return self.role == self.RoleChoices.CUSTOMER

    def is_business_owner(self) -> bool:
        return self.role == self.RoleChoices.BUSINESS_OWNER

    def is_platform_admin(self) -> bool:
        return self.role == self.RoleChoices.ADMIN or self.is_superuser

    @property
    def is_locked(self) -> bool:
        return bool(self.locked_until and self.locked_until > timezone.now())

    def lock(self, minutes: int = 15) -> None:
        self.locked_until = timezone.now() + timedelta(minutes=minutes)
        self.failed_login_attempts = 0
        self.save(update_fields=["locked_until", "failed_login_attempts"])

    def unlock(self) -> None:
        self.locked_until = None
        self.failed_login_attempts = 0
        self.save(update_fields=["locked_until", "failed_login_attempts"])

    def register_failed_attempt(self, threshold: int = 5) -> None:
        self.failed_login_attempts += 1
        if self.failed_login_attempts >= threshold:
            self.lock()
            return
        self.save(update_fields=["failed_login_attempts"])


class PasswordResetToken(models.Model):
    """Password reset token. Only the sha256 of the emailed token is stored."""

    user = models.ForeignKey(
        CustomUser,
        on_delete=models.CASCADE,
        related_name="password_reset_tokens",
    )
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Password reset token")
        verbose_name_plural = _("Password reset tokens")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["token_hash", "expires_at"]),
        ]

    def __str__(self) -> str:
        return f"Reset token for {self.user_id} (expires {self.expires_at:%Y-%m-%d %H:%M})"

    @property
    def is_expired(self) -> bool:
        return timezone.now() >= self.expires_at

    @staticmethod
    def hash_token(raw_token: str) -> str:
        return hashlib.sha256(raw_token.encode()).hexdigest()

    @classmethod
    def issue_for(cls, user: CustomUser) -> str:
        """Replace the user's tokens with a fresh one and return the raw value."""
        cls.objects.filter(user=user).delete()
        raw_token = secrets.token_hex(32)
        cls.objects.create(
            user=user,
            token_hash=cls.hash_token(raw_token),
            expires_at=timezone.now() + timedelta(hours=settings.PASSWORD_RESET_TOKEN_TTL_HOURS),
        )
        return raw_token


# Short alias used across apps and tests
User = CustomUser
