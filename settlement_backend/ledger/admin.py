# ledger/admin.py

"""
Ledger entries are append-only. Admin is a read-only window onto them;
corrections go through the adjustment / write-off endpoints.
"""

from django.contrib import admin

from ledger.models import LedgerEntry


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "customer",
        "entry_type",
        "amount",
        "balance_after",
        "reference_type",
        "reference_id",
        "created_by",
    )
    list_filter = ("entry_type", "reference_type", "workspace")
    search_fields = ("customer__name", "reference_id", "description")
    ordering = ("-created_at",)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
