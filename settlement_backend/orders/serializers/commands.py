# orders/serializers/commands.py

from decimal import Decimal

from rest_framework import serializers

from orders.models import Order
from orders.services.order_service import CREATABLE_STATES
from payments.models import Payment


class OrderLineSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    variant_id = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.00"),
        required=False,
        allow_null=True,
    )


class OrderCreateSerializer(serializers.Serializer):
    workspace = serializers.UUIDField()
    customer_id = serializers.UUIDField()
    items = OrderLineSerializer(many=True)
    status = serializers.ChoiceField(
        choices=sorted(CREATABLE_STATES), default=Order.STATUS_DRAFT
    )
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal("0.00"))
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal("0.00"))
    shipping = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=Decimal("0.00"))
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    paid_amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.00"),
        required=False,
        allow_null=True,
    )
    payment_method = serializers.ChoiceField(
        choices=[c[0] for c in Payment.METHOD_CHOICES], default=Payment.METHOD_CASH
    )

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required.")
        return value


class OrderStatusCommandSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in Order.STATUS_CHOICES])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class OrderPaymentCommandSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    method = serializers.ChoiceField(
        choices=[c[0] for c in Payment.METHOD_CHOICES], default=Payment.METHOD_CASH
    )
    reference = serializers.CharField(required=False, allow_blank=True, max_length=128)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)
