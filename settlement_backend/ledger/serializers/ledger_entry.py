# ledger/serializers/ledger_entry.py

from rest_framework import serializers

from ledger.models import LedgerEntry


class LedgerEntrySerializer(serializers.ModelSerializer):
    signed_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "customer",
            "entry_type",
            "amount",
            "signed_amount",
            "balance_after",
            "currency",
            "reference_type",
            "reference_id",
            "description",
            "metadata",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields
