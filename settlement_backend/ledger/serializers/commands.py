# ledger/serializers/commands.py

"""
Command serializers for ledger writes. They validate input only; every
write goes through ledger / settlement services.
"""

from decimal import Decimal

from rest_framework import serializers

from ledger.models import LedgerEntry
from payments.models import Payment


class PaymentCommandSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    order_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    method = serializers.ChoiceField(
        choices=[c[0] for c in Payment.METHOD_CHOICES],
        default=Payment.METHOD_CASH,
    )
    reference = serializers.CharField(required=False, allow_blank=True, max_length=128)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)


class AdjustmentCommandSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    entry_type = serializers.ChoiceField(choices=[LedgerEntry.DEBIT, LedgerEntry.CREDIT])
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    reason = serializers.CharField(max_length=255)


class WriteOffCommandSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
