"""Serializers for authentication flows (signup, login, password reset)."""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings  # type: ignore
from django.contrib.auth import get_user_model  # type: ignore
from django.contrib.auth.password_validation import validate_password  # type: ignore
from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.businesses.models import Business
from apps.notifications.services import send_password_reset_email
from .models import PHONE_VALIDATOR, PasswordResetToken


User = get_user_model()
logger = logging.getLogger(__name__)


class RegisterSerializer(serializers.Serializer):
    """Customer signup."""

    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, write_only=True)
    password_confirm = serializers.CharField(min_length=8, write_only=True)
    phone = serializers.CharField(required=False, allow_blank=True, validators=[PHONE_VALIDATOR])
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)
    username = serializers.CharField(required=False, allow_blank=True)

    role = User.RoleChoices.CUSTOMER

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if attrs.get("password") != attrs.get("password_confirm"):
            raise serializers.ValidationError({"password_confirm": "Passwords do not match."})
        if User.objects.filter(email__iexact=attrs.get("email")).exists():
            raise serializers.ValidationError({"email": "A user with this email already exists."})
        phone = attrs.get("phone")
        if phone and User.objects.filter(phone=User.objects.normalize_phone(phone)).exists():
            raise serializers.ValidationError({"phone": "A user with this phone already exists."})
        return attrs

    def _user_fields(self, validated_data: dict[str, Any]) -> dict[str, Any]:
        return {
            key: validated_data.get(key, "")
            for key in ("first_name", "last_name", "username", "phone")
        }

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]):  # type: ignore
        return User.objects.create_user(
            email=validated_data["email"],
            password=validated_data["password"],
            role=self.role,
            **self._user_fields(validated_data),
        )


class BusinessRegisterSerializer(RegisterSerializer):
    """Business owner signup: the owner account and the listing are created together."""

    business_name = serializers.CharField(max_length=255)
    category = serializers.ChoiceField(choices=Business.Category.choices)
    description = serializers.CharField(required=False, allow_blank=True)
    address = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=50)
    zip_code = serializers.CharField(max_length=20)
    business_phone = serializers.CharField(max_length=20)

    role = User.RoleChoices.BUSINESS_OWNER

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]):  # type: ignore
        user = super().create(validated_data)
        Business.objects.create(
            owner=user,
            business_name=validated_data["business_name"],
            category=validated_data["category"],
            description=validated_data.get("description", ""),
            address=validated_data["address"],
            city=validated_data["city"],
            state=validated_data["state"],
            zip_code=validated_data["zip_code"],
            phone=validated_data["business_phone"],
            email=user.email,
        )
        return user


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        try:
            user = User.objects.get(email__iexact=attrs.get("email", ""))
        except User.DoesNotExist:
            raise serializers.ValidationError({"email": "Invalid email or password."})

        if user.is_locked:
            raise serializers.ValidationError(
                {"non_field_errors": ["Account temporarily locked. Try again later."]}
            )

        if not user.check_password(attrs.get("password", "")):
            user.register_failed_attempt(threshold=5)
            raise serializers.ValidationError({"email": "Invalid email or password."})

        if not user.is_active:
            raise serializers.ValidationError({"non_field_errors": ["Account is disabled."]})

        if user.failed_login_attempts or user.locked_until:
            user.unlock()

        attrs["user"] = user
        return attrs


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def save(self, **kwargs):  # type: ignore
        """Issue a reset link when the account exists; silent otherwise."""
        email = self.validated_data["email"]
        user = User.objects.filter(email__iexact=email, is_active=True).first()
        if user is None:
            logger.info(f"Password reset requested for unknown email {email}")
            return None

        with transaction.atomic():
            raw_token = PasswordResetToken.issue_for(user)

        reset_url = f"{settings.APP_URL}/auth/reset-password?token={raw_token}"
        send_password_reset_email(user, reset_url)
        return user


class ResetPasswordSerializer(serializers.Serializer):
    token = serializers.CharField()
    password = serializers.CharField(min_length=8, write_only=True)

    def validate_password(self, value: str) -> str:
        validate_password(value)
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        token_hash = PasswordResetToken.hash_token(attrs["token"])
        reset_token = PasswordResetToken.objects.select_related("user").filter(token_hash=token_hash).first()
        if reset_token is None:
            raise serializers.ValidationError({"token": "Invalid or expired reset token."})
        if reset_token.is_expired:
            reset_token.delete()
            raise serializers.ValidationError({"token": "Invalid or expired reset token."})
        attrs["reset_token"] = reset_token
        return attrs

    @transaction.atomic
    def save(self, **kwargs):  # type: ignore
        user = self.validated_data["reset_token"].user
        user.set_password(self.validated_data["password"])
        user.locked_until = None
        user.failed_login_attempts = 0
        user.save(update_fields=["password", "locked_until", "failed_login_attempts"])
        PasswordResetToken.objects.filter(user=user).delete()
        logger.info(f"Password reset completed for user {user.id}")
        return user
