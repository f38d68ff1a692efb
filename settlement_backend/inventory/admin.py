# inventory/admin.py

from django.contrib import admin

from inventory.models import (
    Product,
    ProductVariant,
    StockItem,
    StockMovement,
    StockReservation,
)


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "workspace", "unit_price", "is_active")
    search_fields = ("sku", "name")
    list_filter = ("is_active", "workspace")
    inlines = [ProductVariantInline]


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ("product", "variant", "quantity", "reserved", "low_threshold", "location")
    # Counts change only through stock_adjustments / reservations (movement audit).
    readonly_fields = ("quantity", "reserved", "updated_at")
    search_fields = ("product__sku", "product__name")


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "stock_item",
        "movement_type",
        "quantity_delta",
        "previous_qty",
        "new_qty",
        "created_by",
    )
    list_filter = ("movement_type",)
    search_fields = ("reference_id", "reason")

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockReservation)
class StockReservationAdmin(admin.ModelAdmin):
    list_display = ("order", "stock_item", "quantity", "status", "expires_at")
    list_filter = ("status",)
    readonly_fields = ("committed_at", "released_at", "created_at")
