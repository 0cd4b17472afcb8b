from django.contrib import admin  # type: ignore

from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("event_id", "event_type", "payment_intent_id", "amount", "status", "created_at")
    list_filter = ("event_type", "status")
    search_fields = ("event_id", "payment_intent_id")
    readonly_fields = ("payload", "created_at")
