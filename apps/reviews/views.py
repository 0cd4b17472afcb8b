"""API views for managing reviews."""

from __future__ import annotations

import logging

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.models import Booking

from .models import Review
from .serializers import BusinessResponseSerializer, ReviewCreateSerializer, ReviewSerializer

logger = logging.getLogger(__name__)


class ReviewViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Public reviews for a business, created by customers after a completed booking."""

    serializer_class = ReviewSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get_queryset(self):  # type: ignore
        qs = Review.objects.select_related('user', 'business', 'booking__service', 'staff')
        user = self.request.user

        business_id = self.request.query_params.get('business')
        if business_id:
            qs = qs.filter(business_id=business_id)

        if not user.is_authenticated:
            return qs.filter(is_approved=True)
        if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
            return qs
        if hasattr(user, "is_platform_admin") and user.is_platform_admin():
            return qs

        # Authors and the reviewed business also see unapproved reviews.
        return qs.filter(
            models.Q(is_approved=True) | models.Q(user=user) | models.Q(business__owner=user)
        )

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = (
            Booking.objects.select_related('business', 'staff')
            .filter(pk=data['booking_id'], customer=request.user)
            .first()
        )
        if booking is None or booking.status != Booking.Status.COMPLETED:
            return Response(
                {"detail": "You can only review completed bookings"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if Review.objects.filter(booking=booking).exists():
            return Response(
                {"detail": "You have already reviewed this booking"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        review = Review.objects.create(
            user=request.user,
            business=booking.business,
            booking=booking,
            staff=booking.staff,
            rating=data['rating'],
            comment=data['comment'],
        )
        logger.info(f"Review {review.id} created for booking {booking.id}")
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_classes=[permissions.IsAuthenticated])
    def respond(self, request, pk=None):  # type: ignore
        """Business owner reply to a review."""
        review = self.get_object()

        if review.business.owner_id != request.user.id:
            return Response(
                {"detail": "Only the business owner can respond to reviews."},
                status=status.HTTP_403_FORBIDDEN,
            )

        serializer = BusinessResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review.business_response = serializer.validated_data['business_response']
        review.business_response_at = timezone.now()
        review.save(update_fields=['business_response', 'business_response_at', 'updated_at'])

        return Response(ReviewSerializer(review).data, status=status.HTTP_200_OK)
