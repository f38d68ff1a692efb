# inventory/serializers/stock.py

from rest_framework import serializers

from inventory.models import StockItem, StockMovement, StockReservation


class StockItemSerializer(serializers.ModelSerializer):
    """
    quantity/reserved are read-only here: on-hand stock only moves through
    adjust_stock (movement audited), reserved only through reservations.
    initial_quantity is accepted on create and posted as a restock.
    """

    available = serializers.IntegerField(read_only=True)
    is_low = serializers.BooleanField(read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    initial_quantity = serializers.IntegerField(
        write_only=True, required=False, min_value=0, default=0
    )

    class Meta:
        model = StockItem
        fields = [
            "id",
            "product",
            "product_name",
            "variant",
            "quantity",
            "reserved",
            "available",
            "low_threshold",
            "is_low",
            "location",
            "initial_quantity",
            "updated_at",
        ]
        read_only_fields = ["id", "quantity", "reserved", "available", "is_low", "updated_at"]

    def validate(self, attrs):
        variant = attrs.get("variant")
        product = attrs.get("product") or getattr(self.instance, "product", None)
        if variant is not None and product is not None and variant.product_id != product.pk:
            raise serializers.ValidationError({"variant": "Variant does not belong to product."})
        return attrs


class StockAdjustmentCommandSerializer(serializers.Serializer):
    quantity_delta = serializers.IntegerField()
    reason = serializers.CharField(max_length=255)
    restock = serializers.BooleanField(required=False, default=False)

    def validate_quantity_delta(self, value):
        if value == 0:
            raise serializers.ValidationError("quantity_delta cannot be 0.")
        return value


class StockMovementSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockMovement
        fields = [
            "id",
            "stock_item",
            "movement_type",
            "quantity_delta",
            "previous_qty",
            "new_qty",
            "reason",
            "reference_type",
            "reference_id",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class StockReservationSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockReservation
        fields = [
            "id",
            "order",
            "stock_item",
            "product",
            "variant",
            "quantity",
            "status",
            "expires_at",
            "committed_at",
            "released_at",
            "created_at",
        ]
        read_only_fields = fields
