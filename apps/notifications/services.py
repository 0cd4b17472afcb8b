"""Notification services for email, SMS and in-app messages."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from django.conf import settings  # type: ignore
from django.core.mail import EmailMultiAlternatives, send_mail  # type: ignore
from django.template.loader import render_to_string  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.html import strip_tags  # type: ignore
from twilio.rest import Client  # type: ignore

from .models import Channel, NotificationSettings, NotificationTemplate

if TYPE_CHECKING:  # pragma: no cover
    from apps.bookings.models import Booking
    from apps.businesses.models import Business
    from apps.users.models import CustomUser

logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
PLACEHOLDER_PATTERN = re.compile(r"{{\s*(\w+)\s*}}")


# ============================================================================
# EMAIL NOTIFICATIONS
# ============================================================================

def send_email_notification(
    recipient_email: str,
    subject: str,
    template_name: str | None,
    context: dict,
    *,
    html_message: str | None = None,
    reply_to: str | None = None,
) -> bool:
    """
    Send an email and report whether it went out.

    Args:
        recipient_email: Recipient address
        subject: Subject line
        template_name: Django template to render (optional)
        context: Template context; ``message`` is used as plain text when
            there is neither a template nor ``html_message``
        html_message: Ready-made HTML body (optional)
        reply_to: Reply-To address (optional)

    Returns:
        bool: True if the email was sent
    """
    try:
        if html_message:
            text_message = strip_tags(html_message)
        elif template_name:
            html_message = render_to_string(template_name, context)
            text_message = strip_tags(html_message)
        else:
            text_message = context.get("message", "")
            html_message = None

        if reply_to:
            email = EmailMultiAlternatives(
                subject=subject,
                body=text_message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[recipient_email],
                reply_to=[reply_to],
            )
            if html_message:
                email.attach_alternative(html_message, "text/html")
            email.send(fail_silently=False)
        else:
            send_mail(
                subject=subject,
                message=text_message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient_email],
                html_message=html_message,
                fail_silently=False,
            )

        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


def send_password_reset_email(user: "CustomUser", reset_url: str) -> bool:
    subject = "Reset your Glamfric password"
    html_message = f"""
    <html>
    <body>
        <h2>Hi {user.display_name},</h2>
        <p>We received a request to reset your password.</p>
        <p>Choose a new password: <a href="{reset_url}">{reset_url}</a></p>
        <p>The link expires in {settings.PASSWORD_RESET_TOKEN_TTL_HOURS} hour(s). If you did not ask for
        this, you can ignore this email.</p>
        <p>The Glamfric team</p>
    </body>
    </html>
    """
    return send_email_notification(
        recipient_email=user.email,
        subject=subject,
        template_name=None,
        context={"reset_url": reset_url},
        html_message=html_message,
    )


def _booking_context(booking: "Booking") -> dict[str, Any]:
    start = timezone.localtime(booking.start_time)
    return {
        "customerName": booking.customer.display_name,
        "businessName": booking.business.business_name,
        "serviceName": booking.service.name,
        "date": start.strftime("%A, %B %d, %Y"),
        "time": start.strftime("%I:%M %p"),
        "staffName": booking.staff.name if booking.staff_id else "Any available",
        "price": f"${booking.total_price}",
        "hoursUntil": str(max(0, round(booking.hours_until_start))),
        "reviewLink": f"{settings.APP_URL}/bookings/{booking.id}/review",
        "businessUrl": f"{settings.APP_URL}/business/{booking.business.slug}",
    }


def _reply_to(business: "Business") -> str | None:
    prefs = NotificationSettings.objects.filter(business=business).first()
    if prefs is None or not prefs.reply_to_email:
        return None
    return prefs.reply_to_email


def send_booking_confirmation_email(booking: "Booking") -> bool:
    """Booking confirmation to the customer."""
    context = _booking_context(booking)
    subject = f"Booking confirmed at {context['businessName']}"

    html_message = f"""
    <html>
    <body>
        <h2>Hi {context['customerName']},</h2>
        <p>Your booking is confirmed.</p>

        <h3>Booking details:</h3>
        <ul>
            <li><strong>Service:</strong> {context['serviceName']}</li>
            <li><strong>Business:</strong> {context['businessName']}</li>
            <li><strong>Date:</strong> {context['date']}</li>
            <li><strong>Time:</strong> {context['time']}</li>
            <li><strong>Staff:</strong> {context['staffName']}</li>
            <li><strong>Total:</strong> {context['price']}</li>
        </ul>

        <p>Need to cancel? You can do it free of charge up to
        {settings.BOOKING_CANCELLATION_WINDOW_HOURS} hours before your appointment.</p>

        <p>See you soon,<br>The Glamfric team</p>
    </body>
    </html>
    """

    return send_email_notification(
        recipient_email=booking.customer.email,
        subject=subject,
        template_name=None,
        context=context,
        html_message=html_message,
        reply_to=_reply_to(booking.business),
    )


def send_payment_receipt_email(booking: "Booking") -> bool:
    """Receipt with the amount charged and how it was split."""
    context = _booking_context(booking)
    subject = f"Your receipt for booking #{booking.id}"

    html_message = f"""
    <html>
    <body>
        <h2>Payment receipt</h2>
        <p>Thanks, {context['customerName']}. We received your payment.</p>

        <table>
            <tr><td>{context['serviceName']} at {context['businessName']}</td><td>${booking.total_price}</td></tr>
            <tr><td>Platform fee</td><td>${booking.platform_fee}</td></tr>
            <tr><td>Card processing</td><td>${booking.stripe_fee}</td></tr>
            <tr><td>Paid to {context['businessName']}</td><td>${booking.business_payout}</td></tr>
            <tr><td><strong>Total charged</strong></td><td><strong>${booking.total_price}</strong></td></tr>
        </table>

        <p>Appointment: {context['date']} at {context['time']}</p>

        <p>The Glamfric team</p>
    </body>
    </html>
    """

    return send_email_notification(
        recipient_email=booking.customer.email,
        subject=subject,
        template_name=None,
        context=context,
        html_message=html_message,
    )


def send_booking_reminder_email(booking: "Booking") -> bool:
    """Reminder about an appointment in the next 24 hours."""
    context = _booking_context(booking)
    subject = f"Reminder: {context['serviceName']} at {context['businessName']}"

    html_message = f"""
    <html>
    <body>
        <h2>Hi {context['customerName']},</h2>
        <p>This is a reminder about your upcoming appointment.</p>

        <ul>
            <li><strong>Service:</strong> {context['serviceName']}</li>
            <li><strong>Date:</strong> {context['date']}</li>
            <li><strong>Time:</strong> {context['time']}</li>
            <li><strong>Address:</strong> {booking.business.address}, {booking.business.city}</li>
            <li><strong>Phone:</strong> {booking.business.phone}</li>
        </ul>

        <p>See you soon,<br>{context['businessName']}</p>
    </body>
    </html>
    """

    return send_email_notification(
        recipient_email=booking.customer.email,
        subject=subject,
        template_name=None,
        context=context,
        html_message=html_message,
        reply_to=_reply_to(booking.business),
    )


def send_booking_cancellation_email(booking: "Booking") -> bool:
    context = _booking_context(booking)
    subject = f"Booking #{booking.id} cancelled"

    html_message = f"""
    <html>
    <body>
        <h2>Hi {context['customerName']},</h2>
        <p>Your booking for <strong>{context['serviceName']}</strong> at
        <strong>{context['businessName']}</strong> on {context['date']} at {context['time']}
        has been cancelled.</p>

        <p>You can book another appointment at any time.</p>

        <p>The Glamfric team</p>
    </body>
    </html>
    """

    return send_email_notification(
        recipient_email=booking.customer.email,
        subject=subject,
        template_name=None,
        context=context,
        html_message=html_message,
    )


def send_refund_processed_email(booking: "Booking") -> bool:
    context = _booking_context(booking)
    subject = f"Refund for booking #{booking.id}"

    html_message = f"""
    <html>
    <body>
        <h2>Hi {context['customerName']},</h2>
        <p>We refunded <strong>${booking.total_price}</strong> for {context['serviceName']}
        at {context['businessName']}.</p>

        <p>Refunds usually appear on your statement within 5-10 business days.</p>

        <p>The Glamfric team</p>
    </body>
    </html>
    """

    return send_email_notification(
        recipient_email=booking.customer.email,
        subject=subject,
        template_name=None,
        context=context,
        html_message=html_message,
    )


# ============================================================================
# SMS NOTIFICATIONS
# ============================================================================

def get_twilio_client() -> Client | None:
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER):
        return None
    return Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)


def send_sms_notification(to: str, body: str, *, from_number: str | None = None) -> bool:
    """
    Send an SMS through Twilio.

    Returns False without calling Twilio when it is not configured or
    ``to`` is not an E.164 number.
    """
    client = get_twilio_client()
    if client is None:
        logger.warning(f"Twilio is not configured; SMS to {to} skipped")
        return False
    if not to or not E164_PATTERN.match(to):
        logger.warning(f"Phone number not in E.164 format: {to}")
        return False

    try:
        message = client.messages.create(
            to=to,
            from_=from_number or settings.TWILIO_FROM_NUMBER,
            body=body,
        )
        logger.info(f"SMS sent to {to} ({message.sid})")
        return True
    except Exception as e:
        logger.error(f"Failed to send SMS to {to}: {e}", exc_info=True)
        return False


def is_quiet_time(prefs: NotificationSettings, at: datetime | None = None) -> bool:
    """True when ``at`` falls inside the business's quiet hours, in its own timezone."""
    if not prefs.quiet_hours_enabled:
        return False

    try:
        tz = ZoneInfo(prefs.timezone)
    except (KeyError, ValueError):
        tz = timezone.get_default_timezone()
    local = (at or timezone.now()).astimezone(tz).time()

    start, end = prefs.quiet_hours_start, prefs.quiet_hours_end
    if start == end:
        return False
    if start < end:
        return start <= local < end
    # Window wraps past midnight, e.g. 21:00-09:00.
    return local >= start or local < end


def send_business_sms(business: "Business", to: str, body: str, *, at: datetime | None = None) -> bool:
    """SMS on behalf of a business, held when SMS is off or during quiet hours."""
    prefs = NotificationSettings.objects.filter(business=business).first()
    if prefs is None or not prefs.sms_enabled:
        return False
    if is_quiet_time(prefs, at):
        logger.info(f"SMS to {to} held: quiet hours for business {business.id}")
        return False
    return send_sms_notification(to, body, from_number=prefs.sms_from_number or None)


# ============================================================================
# TEMPLATES
# ============================================================================

DEFAULT_SUBJECTS: dict[str, str] = {
    NotificationTemplate.Type.BOOKING_CONFIRMATION: "Booking Confirmation - {{businessName}}",
    NotificationTemplate.Type.BOOKING_REMINDER: "Appointment Reminder - {{businessName}}",
    NotificationTemplate.Type.BOOKING_CANCELLED: "Booking Cancelled - {{businessName}}",
    NotificationTemplate.Type.PAYMENT_RECEIPT: "Your receipt from {{businessName}}",
    NotificationTemplate.Type.REFUND_PROCESSED: "Refund processed - {{businessName}}",
    NotificationTemplate.Type.REVIEW_REQUEST: "How was your experience? - {{businessName}}",
    NotificationTemplate.Type.PROMOTION: "Special Offer from {{businessName}}",
}

DEFAULT_CONTENT: dict[tuple[str, str], str] = {
    (NotificationTemplate.Type.BOOKING_CONFIRMATION, Channel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "Your booking at {{businessName}} has been confirmed!\n\n"
        "Service: {{serviceName}}\nDate: {{date}}\nTime: {{time}}\nStaff: {{staffName}}\nPrice: {{price}}\n\n"
        "We look forward to seeing you!\n\n{{businessName}}"
    ),
    (NotificationTemplate.Type.BOOKING_CONFIRMATION, Channel.SMS): (
        "{{businessName}}: Your booking for {{serviceName}} on {{date}} at {{time}} is confirmed. See you soon!"
    ),
    (NotificationTemplate.Type.BOOKING_REMINDER, Channel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "This is a reminder about your upcoming appointment at {{businessName}}.\n\n"
        "Service: {{serviceName}}\nDate: {{date}}\nTime: {{time}}\nStaff: {{staffName}}\n\n"
        "Your appointment is in {{hoursUntil}} hours. See you soon!\n\n{{businessName}}"
    ),
    (NotificationTemplate.Type.BOOKING_REMINDER, Channel.SMS): (
        "{{businessName}}: Reminder - you have {{serviceName}} on {{date}} at {{time}}."
    ),
    (NotificationTemplate.Type.BOOKING_CANCELLED, Channel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "Your booking at {{businessName}} has been cancelled.\n\n"
        "Service: {{serviceName}}\nOriginal date: {{date}}\nOriginal time: {{time}}\n\n"
        "We hope to see you again soon.\n\n{{businessName}}"
    ),
    (NotificationTemplate.Type.BOOKING_CANCELLED, Channel.SMS): (
        "{{businessName}}: Your booking for {{serviceName}} on {{date}} has been cancelled."
    ),
    (NotificationTemplate.Type.REVIEW_REQUEST, Channel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "Thank you for visiting {{businessName}}! We hope you enjoyed your {{serviceName}}.\n\n"
        "We'd love to hear about your experience:\n{{reviewLink}}\n\n{{businessName}}"
    ),
    (NotificationTemplate.Type.REVIEW_REQUEST, Channel.SMS): (
        "{{businessName}}: Thanks for your visit! We'd love your feedback: {{reviewLink}}"
    ),
}

SAMPLE_CONTEXT: dict[str, str] = {
    "serviceName": "Test Service",
    "time": "2:00 PM",
    "staffName": "Test Staff",
    "price": "$50.00",
    "hoursUntil": "24",
    "reviewLink": "https://example.com/review",
}


def render_template(text: str, context: dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left as they are."""

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        return str(context[key]) if key in context else match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text or "")


def get_template_content(prefs: NotificationSettings | None, type: str, channel: str) -> tuple[str, str]:
    """Subject and body for a message, preferring the business's active custom template."""
    template = None
    if prefs is not None:
        template = prefs.templates.filter(type=type, channel=channel, is_active=True).first()
    subject = (template.subject if template else "") or DEFAULT_SUBJECTS.get(type, "Notification from {{businessName}}")
    content = (template.content if template else "") or DEFAULT_CONTENT.get(
        (type, channel), f"Test notification for {type}"
    )
    return subject, content


def sample_context(business: "Business") -> dict[str, str]:
    return {
        **SAMPLE_CONTEXT,
        "customerName": business.owner.display_name,
        "businessName": business.business_name,
        "date": timezone.localdate().strftime("%m/%d/%Y"),
        "businessUrl": f"{settings.APP_URL}/business/{business.slug}",
    }


def send_booking_sms(booking: "Booking", type: str) -> bool:
    """Text the customer using the business's template, if SMS is set up."""
    phone = booking.customer.phone
    if not phone:
        return False
    prefs = NotificationSettings.objects.filter(business=booking.business).first()
    _subject, content = get_template_content(prefs, type, Channel.SMS)
    return send_business_sms(booking.business, phone, render_template(content, _booking_context(booking)))


# ============================================================================
# IN-APP NOTIFICATIONS
# ============================================================================

def create_in_app_notification(user: "CustomUser", title: str, message: str) -> bool:
    """
    Store an in-app notification.

    Args:
        user: Recipient
        title: Notification title
        message: Notification text

    Returns:
        bool: True if the notification was created
    """
    try:
        from .models import Notification

        Notification.objects.create(
            user=user,
            title=title,
            message=message,
        )

        logger.info(f"In-app notification created for {user.email}: {title}")
        return True

    except Exception as e:
        logger.error(f"Failed to create in-app notification for {user.email}: {e}", exc_info=True)
        return False
