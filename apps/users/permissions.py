"""Role-based permission classes shared by the domain apps."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore


class IsBusinessOwner(permissions.BasePermission):
    """
    Allows access to users with the business owner role.

    Platform staff pass as well so support can act on a tenant's behalf.
    """

    message = "Only business owners can perform this action."

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return True
        return hasattr(user, "is_business_owner") and user.is_business_owner()


class IsBusinessOwnerOrReadOnly(IsBusinessOwner):
    """Anyone can read; writes require the business owner role."""

    def has_permission(self, request, view) -> bool:  # type: ignore
        if request.method in permissions.SAFE_METHODS:
            return True
        return super().has_permission(request, view)


class IsPlatformAdmin(permissions.BasePermission):
    """Platform administrators and Django staff only."""

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return True
        return hasattr(user, "is_platform_admin") and user.is_platform_admin()


class IsCustomer(permissions.BasePermission):
    """Users with the customer role, for actions taken on their own behalf."""

    message = "Only customers can perform this action."

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return hasattr(user, "is_customer") and user.is_customer()
