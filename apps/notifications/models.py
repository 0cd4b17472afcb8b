"""Notification models.

``Notification`` is the in-app inbox entry shown to any user. The other
models hold a business's outbound messaging configuration: channel
settings with quiet hours, custom message templates and per-event
triggers.
"""

from __future__ import annotations

from datetime import time

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Channel(models.TextChoices):
    EMAIL = 'EMAIL', _('Email')
    SMS = 'SMS', _('SMS')


class Notification(models.Model):
    """A message sent to a user about some event."""

    user = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='notifications'
    )
    title = models.CharField(max_length=255)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"Notification to {self.user_id}: {self.title}"


class NotificationSettings(models.Model):
    """Outbound messaging preferences of one business."""

    business = models.OneToOneField(
        'businesses.Business', on_delete=models.CASCADE, related_name='notification_settings'
    )
    email_enabled = models.BooleanField(default=True)
    email_from_name = models.CharField(max_length=255, blank=True)
    reply_to_email = models.EmailField(blank=True)
    sms_enabled = models.BooleanField(default=False)
    sms_from_number = models.CharField(max_length=20, blank=True)
    timezone = models.CharField(max_length=64, default='America/New_York')
    quiet_hours_enabled = models.BooleanField(default=True)
    quiet_hours_start = models.TimeField(default=time(21, 0))
    quiet_hours_end = models.TimeField(default=time(9, 0))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Notification settings')
        verbose_name_plural = _('Notification settings')

    def __str__(self) -> str:
        return f"Notification settings for {self.business_id}"


class NotificationTemplate(models.Model):
    class Type(models.TextChoices):
        BOOKING_CONFIRMATION = 'BOOKING_CONFIRMATION', _('Booking confirmation')
        BOOKING_REMINDER = 'BOOKING_REMINDER', _('Booking reminder')
        BOOKING_CANCELLED = 'BOOKING_CANCELLED', _('Booking cancelled')
        PAYMENT_RECEIPT = 'PAYMENT_RECEIPT', _('Payment receipt')
        REFUND_PROCESSED = 'REFUND_PROCESSED', _('Refund processed')
        REVIEW_REQUEST = 'REVIEW_REQUEST', _('Review request')
        PROMOTION = 'PROMOTION', _('Promotion')

    settings = models.ForeignKey(NotificationSettings, on_delete=models.CASCADE, related_name='templates')
    type = models.CharField(max_length=24, choices=Type.choices)
    channel = models.CharField(max_length=5, choices=Channel.choices)
    subject = models.CharField(max_length=255, blank=True)
    content = models.TextField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['type', 'channel']
        constraints = [
            models.UniqueConstraint(
                fields=['settings', 'type', 'channel'], name='notification_template_unique_type_channel'
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type} ({self.channel})"


class NotificationTrigger(models.Model):
    class Timing(models.TextChoices):
        IMMEDIATE = 'IMMEDIATE', _('Immediately')
        DELAYED = 'DELAYED', _('After a delay')
        ADVANCE = 'ADVANCE', _('In advance')

    settings = models.ForeignKey(NotificationSettings, on_delete=models.CASCADE, related_name='triggers')
    event = models.CharField(max_length=24, choices=NotificationTemplate.Type.choices)
    channel = models.CharField(max_length=5, choices=Channel.choices)
    enabled = models.BooleanField(default=True)
    timing = models.CharField(max_length=10, choices=Timing.choices, default=Timing.IMMEDIATE)
    delay_minutes = models.PositiveIntegerField(null=True, blank=True)
    advance_hours = models.PositiveIntegerField(null=True, blank=True)
    conditions = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['event', 'channel']
        constraints = [
            models.UniqueConstraint(
                fields=['settings', 'event', 'channel'], name='notification_trigger_unique_event_channel'
            ),
        ]

    def __str__(self) -> str:
        return f"{self.event} via {self.channel} ({self.timing})"
