# orders/admin.py

from django.contrib import admin

from orders.models import InvoiceRecord, Order, OrderItem, OrderStatusHistory


# ======================================================
# INLINES
# ======================================================


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ("product", "variant", "product_name", "quantity", "unit_price", "line_total")


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = (
        "previous_status",
        "new_status",
        "reason",
        "source_reference",
        "changed_by",
        "created_at",
    )

    def has_add_permission(self, request, obj=None):
        return False


# ======================================================
# ORDER ADMIN
# ======================================================


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "customer",
        "status",
        "total",
        "paid_amount",
        "created_at",
    )
    # Status and money move through order_service / settlement only.
    readonly_fields = (
        "order_number",
        "status",
        "subtotal",
        "total",
        "paid_amount",
        "debit_posted",
        "paid_at",
        "cancelled_at",
        "deleted_at",
        "created_at",
        "updated_at",
    )
    search_fields = ("order_number", "customer__name")
    list_filter = ("status", "workspace", "created_at")
    inlines = [OrderItemInline, OrderStatusHistoryInline]


@admin.register(InvoiceRecord)
class InvoiceRecordAdmin(admin.ModelAdmin):
    list_display = ("order", "status", "invoice_number", "authorization_code", "created_at")
    readonly_fields = (
        "order",
        "status",
        "invoice_number",
        "authorization_code",
        "authorization_expires_at",
        "raw_response",
        "requested_by",
        "created_at",
    )
    search_fields = ("order__order_number", "invoice_number")
    list_filter = ("status",)
