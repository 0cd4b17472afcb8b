"""Models for the review domain.

A customer can review a booking once it is completed. The business and
staff member are copied from the booking so listings can aggregate ratings
without joining through bookings.
"""

from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Review(models.Model):
    """Rating and comment left by a customer for a completed booking."""

    user = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='reviews'
    )
    business = models.ForeignKey(
        'businesses.Business', on_delete=models.CASCADE, related_name='reviews'
    )
    booking = models.OneToOneField(
        'bookings.Booking',
        on_delete=models.CASCADE,
        related_name='review',
    )
    staff = models.ForeignKey(
        'staff.Staff',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews',
    )
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
        help_text=_('Rating from 1 to 5'),
    )
    comment = models.TextField(blank=True)

    business_response = models.TextField(blank=True)
    business_response_at = models.DateTimeField(null=True, blank=True)

    is_approved = models.BooleanField(default=True, help_text=_('Visible on the public listing'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['business', '-created_at']),
            models.Index(fields=['user']),
            models.Index(fields=['rating']),
        ]

    def __str__(self) -> str:
        return f"Review by {self.user_id} for business {self.business_id} (Rating: {self.rating})"
