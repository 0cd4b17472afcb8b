"""Business listing models for Glamfric."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.text import slugify  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Business(models.Model):
    """A salon, barber shop, spa or other beauty business listed on the marketplace."""

    class Category(models.TextChoices):
        HAIR_SALON = "HAIR_SALON", _("Hair Salon")
        BARBER_SHOP = "BARBER_SHOP", _("Barber Shop")
        NAIL_SALON = "NAIL_SALON", _("Nail Salon")
        SPA = "SPA", _("Spa")
        MASSAGE = "MASSAGE", _("Massage")
        MAKEUP = "MAKEUP", _("Makeup")
        SKINCARE = "SKINCARE", _("Skincare")
        WELLNESS = "WELLNESS", _("Wellness")
        OTHER = "OTHER", _("Other")

    owner = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="business",
    )
    business_name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=32, choices=Category.choices, default=Category.OTHER)
    address = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=50)
    zip_code = models.CharField(max_length=20)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    phone = models.CharField(max_length=20)
    email = models.EmailField(blank=True)
    website = models.URLField(blank=True)
    instagram = models.CharField(max_length=100, blank=True)
    opening_hours = models.JSONField(default=dict, blank=True)
    is_verified = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    stripe_account_id = models.CharField(max_length=64, blank=True)
    stripe_onboarded = models.BooleanField(default=False)
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("15.00"),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text=_("Platform commission in percent."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Business")
        verbose_name_plural = _("Businesses")
        ordering = ["business_name"]
        indexes = [
            models.Index(fields=["city", "category"]),
            models.Index(fields=["is_active"]),
            models.Index(fields=["stripe_account_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.business_name} ({self.city})"

    @property
    def can_accept_payments(self) -> bool:
        return bool(self.stripe_account_id and self.stripe_onboarded)

    def save(self, *args, **kwargs):  # type: ignore
        if not self.slug:
            base_slug = slugify(self.business_name)[:240] or "business"
            candidate = base_slug
            counter = 0
            while self.__class__.objects.filter(slug=candidate).exclude(pk=self.pk).exists():
                counter += 1
                candidate = f"{base_slug}-{counter}"
            self.slug = candidate
        super().save(*args, **kwargs)


class BusinessPhoto(models.Model):
    """Image stored in S3 and attached to a business profile."""

    class PhotoType(models.TextChoices):
        HERO = "HERO", _("Hero")
        GALLERY = "GALLERY", _("Gallery")
        LOGO = "LOGO", _("Logo")
        BANNER = "BANNER", _("Banner")

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="photos")
    type = models.CharField(max_length=10, choices=PhotoType.choices, default=PhotoType.GALLERY)
    url = models.URLField(max_length=500)
    key = models.CharField(max_length=500, blank=True)
    caption = models.CharField(max_length=255, blank=True)
    order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Business photo")
        verbose_name_plural = _("Business photos")
        ordering = ["type", "order", "-created_at"]
        indexes = [
            models.Index(fields=["business", "type", "order"]),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} photo for {self.business_id}"

    def make_exclusive_hero(self) -> None:
        """Demote any other hero image of the business to the gallery."""
        if self.type != self.PhotoType.HERO:
            return
        BusinessPhoto.objects.filter(
            business_id=self.business_id,
            type=self.PhotoType.HERO,
        ).exclude(pk=self.pk).update(type=self.PhotoType.GALLERY)


class Availability(models.Model):
    """Weekly opening hours. ``day_of_week`` uses 0=Sunday … 6=Saturday."""

    class Weekday(models.IntegerChoices):
        SUNDAY = 0, _("Sunday")
        MONDAY = 1, _("Monday")
        TUESDAY = 2, _("Tuesday")
        WEDNESDAY = 3, _("Wednesday")
        THURSDAY = 4, _("Thursday")
        FRIDAY = 5, _("Friday")
        SATURDAY = 6, _("Saturday")

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="availability")
    day_of_week = models.PositiveSmallIntegerField(choices=Weekday.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = _("Opening hours")
        verbose_name_plural = _("Opening hours")
        ordering = ["day_of_week", "start_time"]
        constraints = [
            models.UniqueConstraint(fields=["business", "day_of_week"], name="availability_unique_day"),
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="availability_valid_hours",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_day_of_week_display()} {self.start_time:%H:%M}-{self.end_time:%H:%M}"

    @staticmethod
    def weekday_for(value) -> int:
        """Convert a date to the Sunday-based index used by this model."""
        return (value.weekday() + 1) % 7


class TimeOff(models.Model):
    """Closed day, or a closed window when both times are given."""

    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name="time_off")
    date = models.DateField()
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Time off")
        verbose_name_plural = _("Time off")
        ordering = ["date", "start_time"]
        indexes = [
            models.Index(fields=["business", "date"]),
        ]

    def __str__(self) -> str:
        if self.is_full_day:
            return f"{self.business_id} closed on {self.date}"
        return f"{self.business_id} off {self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M}"

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None and self.end_time is None
