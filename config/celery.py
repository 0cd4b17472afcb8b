import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("glamfric")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Cancel bookings whose payment never went through, every 5 minutes
    "expire-unpaid-bookings": {
        "task": "bookings.expire_unpaid_bookings",
        "schedule": 300.0,
        "options": {"expires": 240},
    },
    # Mark finished appointments as completed, every hour
    "complete-finished-bookings": {
        "task": "bookings.complete_finished_bookings",
        "schedule": crontab(minute=15),
    },
    # Appointment reminders for the next 24 hours, every hour
    "send-upcoming-booking-reminders": {
        "task": "bookings.send_upcoming_booking_reminders",
        "schedule": crontab(minute=0),
    },
    # Fill in missing business coordinates, nightly
    "geocode-missing-businesses": {
        "task": "businesses.geocode_missing_businesses",
        "schedule": crontab(minute=30, hour=3),
    },
}

app.conf.timezone = "America/New_York"
