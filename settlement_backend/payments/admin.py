# payments/admin.py

from django.contrib import admin

from payments.models import Payment, PaymentAllocation, WebhookInbox


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    can_delete = False
    readonly_fields = ("order", "amount", "created_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "customer",
        "provider",
        "external_id",
        "method",
        "status",
        "amount",
    )
    list_filter = ("provider", "status", "method")
    search_fields = ("external_id", "customer__name")
    readonly_fields = (
        "provider",
        "external_id",
        "amount",
        "fee",
        "net_amount",
        "ledger_entry",
        "provider_data",
        "created_at",
        "completed_at",
        "reversed_at",
    )
    inlines = [PaymentAllocationInline]


@admin.register(WebhookInbox)
class WebhookInboxAdmin(admin.ModelAdmin):
    list_display = (
        "received_at",
        "provider",
        "external_id",
        "event_type",
        "status",
        "retry_count",
    )
    list_filter = ("provider", "status")
    search_fields = ("external_id", "event_type")
    readonly_fields = (
        "provider",
        "external_id",
        "event_type",
        "payload",
        "signature",
        "correlation_id",
        "retry_count",
        "last_attempt_at",
        "error_message",
        "result",
        "received_at",
        "processed_at",
    )
