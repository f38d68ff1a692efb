# orders/serializers/order.py

from rest_framework import serializers

from orders.models import InvoiceRecord, Order, OrderItem, OrderStatusHistory


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "variant",
            "product_name",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "previous_status",
            "new_status",
            "reason",
            "source_reference",
            "changed_by",
            "created_at",
        ]
        read_only_fields = fields


class InvoiceRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceRecord
        fields = [
            "id",
            "status",
            "invoice_number",
            "authorization_code",
            "authorization_expires_at",
            "requested_by",
            "created_at",
        ]
        read_only_fields = fields


class OrderSummarySerializer(serializers.ModelSerializer):
    """Compact row for lists and debt summaries."""

    pending_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "total",
            "paid_amount",
            "pending_amount",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    pending_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    is_fully_paid = serializers.BooleanField(read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    invoice_records = InvoiceRecordSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "workspace",
            "customer",
            "customer_name",
            "order_number",
            "status",
            "subtotal",
            "tax",
            "discount",
            "shipping",
            "total",
            "paid_amount",
            "pending_amount",
            "is_fully_paid",
            "notes",
            "metadata",
            "created_by",
            "created_at",
            "updated_at",
            "paid_at",
            "cancelled_at",
            "cancel_reason",
            "items",
            "status_history",
            "invoice_records",
        ]
        read_only_fields = fields
