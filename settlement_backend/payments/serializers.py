# payments/serializers.py

from rest_framework import serializers

from payments.models import Payment, PaymentAllocation, WebhookInbox


class PaymentAllocationSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)

    class Meta:
        model = PaymentAllocation
        fields = ["id", "order", "order_number", "amount", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    allocations = PaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "customer",
            "order",
            "provider",
            "external_id",
            "method",
            "status",
            "amount",
            "fee",
            "net_amount",
            "ledger_entry",
            "allocations",
            "created_at",
            "completed_at",
            "reversed_at",
        ]
        read_only_fields = fields


class WebhookInboxSerializer(serializers.ModelSerializer):
    class Meta:
        model = WebhookInbox
        fields = [
            "id",
            "workspace",
            "provider",
            "external_id",
            "event_type",
            "status",
            "correlation_id",
            "retry_count",
            "last_attempt_at",
            "error_message",
            "result",
            "received_at",
            "processed_at",
        ]
        read_only_fields = fields
