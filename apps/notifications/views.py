"""API views for notifications."""

from __future__ import annotations

import logging

from django.utils import timezone  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.businesses.services import get_owned_business
from apps.customers.models import Communication
from apps.users.permissions import IsBusinessOwner

from .models import Channel, Notification, NotificationSettings, NotificationTemplate, NotificationTrigger
from .serializers import (
    NotificationSerializer,
    NotificationSettingsSerializer,
    NotificationTemplateSerializer,
    NotificationTriggerSerializer,
    TestNotificationSerializer,
)
from .services import (
    get_template_content,
    render_template,
    sample_context,
    send_email_notification,
    send_sms_notification,
)

logger = logging.getLogger(__name__)


class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """In-app notifications of the authenticated user."""

    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        qs = Notification.objects.filter(user=self.request.user)
        if self.request.query_params.get('unread') == 'true':
            qs = qs.filter(is_read=False)
        return qs

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):  # type: ignore
        notification = self.get_object()
        notification.is_read = True
        notification.save(update_fields=['is_read'])
        return Response({'status': 'read'}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):  # type: ignore
        updated = Notification.objects.filter(user=request.user, is_read=False).update(is_read=True)
        return Response({'updated': updated}, status=status.HTTP_200_OK)


def _owned_settings(user) -> NotificationSettings:  # type: ignore
    settings, _ = NotificationSettings.objects.get_or_create(business=get_owned_business(user))
    return settings


class NotificationSettingsView(APIView):
    """GET creates the defaults on first access; PUT updates them."""

    permission_classes = [IsBusinessOwner]

    def get(self, request):  # type: ignore
        return Response(NotificationSettingsSerializer(_owned_settings(request.user)).data)

    def put(self, request):  # type: ignore
        settings = _owned_settings(request.user)
        serializer = NotificationSettingsSerializer(settings, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class NotificationTemplateView(APIView):
    permission_classes = [IsBusinessOwner]

    def get(self, request):  # type: ignore
        settings = _owned_settings(request.user)
        return Response(NotificationTemplateSerializer(settings.templates.all(), many=True).data)

    def post(self, request):  # type: ignore
        """Create or replace the template for a (type, channel) pair."""
        settings = _owned_settings(request.user)
        serializer = NotificationTemplateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        template, created = NotificationTemplate.objects.update_or_create(
            settings=settings,
            type=data.pop('type'),
            channel=data.pop('channel'),
            defaults=data,
        )
        return Response(
            NotificationTemplateSerializer(template).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class NotificationTriggerView(APIView):
    permission_classes = [IsBusinessOwner]

    def get(self, request):  # type: ignore
        settings = _owned_settings(request.user)
        return Response(NotificationTriggerSerializer(settings.triggers.all(), many=True).data)

    def post(self, request):  # type: ignore
        """Create or replace the trigger for an (event, channel) pair."""
        settings = _owned_settings(request.user)
        serializer = NotificationTriggerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        trigger, created = NotificationTrigger.objects.update_or_create(
            settings=settings,
            event=data.pop('event'),
            channel=data.pop('channel'),
            defaults=data,
        )
        return Response(
            NotificationTriggerSerializer(trigger).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class TestNotificationView(APIView):
    """Send a rendered template with sample data to the business owner."""

    permission_classes = [IsBusinessOwner]

    def post(self, request):  # type: ignore
        serializer = TestNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        kind = serializer.validated_data['type']
        channel = serializer.validated_data['channel']

        business = get_owned_business(request.user)
        settings = NotificationSettings.objects.filter(business=business).first()
        if settings is None:
            return Response(
                {"detail": "Notification settings not configured"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if channel == Channel.EMAIL and not settings.email_enabled:
            return Response(
                {"detail": "Email notifications are not enabled"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if channel == Channel.SMS and not settings.sms_enabled:
            return Response(
                {"detail": "SMS notifications are not enabled"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        subject, content = get_template_content(settings, kind, channel)
        context = sample_context(business)
        subject = render_template(subject, context)
        content = render_template(content, context)

        owner = business.owner
        if channel == Channel.EMAIL:
            recipient = owner.email
            sent = send_email_notification(
                recipient,
                f"TEST: {subject}",
                None,
                {"message": content},
                reply_to=settings.reply_to_email or None,
            )
        else:
            recipient = owner.phone or ""
            sent = send_sms_notification(recipient, content, from_number=settings.sms_from_number or None)

        Communication.objects.create(
            business=business,
            type=channel,
            subject=f"TEST: {subject}",
            content=f"[TEST NOTIFICATION]\n\n{content}",
            status=Communication.Status.SENT if sent else Communication.Status.FAILED,
            sent_at=timezone.now() if sent else None,
        )
        logger.info(f"Test {channel} notification for business {business.id}: sent={sent}")

        return Response(
            {
                "success": sent,
                "message": f"Test {channel.lower()} sent to {recipient}"
                if sent
                else f"Test {channel.lower()} could not be delivered to {recipient or 'the owner'}",
            }
        )
