# customers/admin.py

from django.contrib import admin

from customers.models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "workspace",
        "email",
        "current_balance",
        "payment_score",
        "order_count",
        "deleted_at",
    )
    # Balance and stats are service-managed; admin edits would bypass the ledger.
    readonly_fields = (
        "current_balance",
        "payment_score",
        "order_count",
        "total_spent",
        "last_order_at",
        "last_payment_at",
        "created_at",
        "updated_at",
    )
    search_fields = ("name", "email", "phone", "tax_id")
    list_filter = ("workspace", "deleted_at")
