"""Serializers for notifications."""

from __future__ import annotations

from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rest_framework import serializers  # type: ignore

from .models import Channel, Notification, NotificationSettings, NotificationTemplate, NotificationTrigger


class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for notifications."""

    class Meta:
        model = Notification
        fields = ['id', 'user', 'title', 'message', 'is_read', 'created_at']
        read_only_fields = ['user', 'title', 'message', 'created_at']


class NotificationTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationTemplate
        fields = ['id', 'type', 'channel', 'subject', 'content', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']
        validators: list = []


class NotificationTriggerSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationTrigger
        fields = [
            'id',
            'event',
            'channel',
            'enabled',
            'timing',
            'delay_minutes',
            'advance_hours',
            'conditions',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        validators: list = []

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        timing = attrs.get('timing', NotificationTrigger.Timing.IMMEDIATE)
        if timing != NotificationTrigger.Timing.DELAYED:
            attrs['delay_minutes'] = None
        if timing != NotificationTrigger.Timing.ADVANCE:
            attrs['advance_hours'] = None
        return attrs


class NotificationSettingsSerializer(serializers.ModelSerializer):
    templates = NotificationTemplateSerializer(many=True, read_only=True)
    triggers = NotificationTriggerSerializer(many=True, read_only=True)

    class Meta:
        model = NotificationSettings
        fields = [
            'id',
            'email_enabled',
            'email_from_name',
            'reply_to_email',
            'sms_enabled',
            'sms_from_number',
            'timezone',
            'quiet_hours_enabled',
            'quiet_hours_start',
            'quiet_hours_end',
            'templates',
            'triggers',
            'updated_at',
        ]
        read_only_fields = ['id', 'templates', 'triggers', 'updated_at']

    def validate_timezone(self, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise serializers.ValidationError('Unknown timezone.')
        return value


class TestNotificationSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=NotificationTemplate.Type.choices)
    channel = serializers.ChoiceField(choices=Channel.choices)
