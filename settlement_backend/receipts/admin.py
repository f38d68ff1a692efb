# receipts/admin.py

from django.contrib import admin

from receipts.models import Receipt


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "customer",
        "order",
        "status",
        "declared_amount",
        "extracted_amount",
        "applied_amount",
    )
    list_filter = ("status", "workspace")
    search_fields = ("customer__name", "file_name", "file_hash")
    readonly_fields = (
        "file_ref",
        "file_hash",
        "file_size_bytes",
        "extracted_amount",
        "extracted_confidence",
        "extracted_raw_text",
        "applied_amount",
        "ledger_entry",
        "status",
        "applied_by",
        "applied_at",
        "created_at",
        "updated_at",
    )
