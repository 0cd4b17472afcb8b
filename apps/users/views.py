"""User API views."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from .serializers import UserSerializer

User = get_user_model()


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """User management.

    - `me` returns or updates the current user's profile
    - listing and retrieving arbitrary users is limited to platform staff
    """

    serializer_class = UserSerializer
    queryset = User.objects.select_related("business").all()
    permission_classes = [permissions.IsAdminUser]

    @action(detail=False, methods=["get", "patch"], permission_classes=[permissions.IsAuthenticated])
    def me(self, request):
        """Return or partially update the current user's profile."""
        if request.method == "PATCH":
            serializer = UserSerializer(request.user, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return Response(serializer.data)
        return Response(UserSerializer(request.user).data)
