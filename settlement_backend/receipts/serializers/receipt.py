# receipts/serializers/receipt.py

from decimal import Decimal

from rest_framework import serializers

from payments.models import Payment
from receipts.models import Receipt


class ReceiptSerializer(serializers.ModelSerializer):
    resolved_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Receipt
        fields = [
            "id",
            "workspace",
            "customer",
            "order",
            "file_name",
            "file_type",
            "file_size_bytes",
            "file_hash",
            "extracted_amount",
            "extracted_confidence",
            "declared_amount",
            "resolved_amount",
            "applied_amount",
            "ledger_entry",
            "payment_method",
            "status",
            "rejection_reason",
            "uploaded_by",
            "applied_by",
            "applied_at",
            "created_at",
        ]
        read_only_fields = fields


class ReceiptUploadSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField()
    file = serializers.FileField()
    declared_amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )
    order_id = serializers.UUIDField(required=False, allow_null=True)
    payment_method = serializers.ChoiceField(
        choices=[c[0] for c in Payment.METHOD_CHOICES], default=Payment.METHOD_TRANSFER
    )
    auto_detect = serializers.BooleanField(required=False, default=True)


class ReceiptApplySerializer(serializers.Serializer):
    order_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )


class ReceiptRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
