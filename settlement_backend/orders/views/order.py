# orders/views/order.py

"""
======================================================
PATH: orders/views/order.py
======================================================
ORDER VIEWSET

    GET    /api/orders/                 list (?workspace=&customer=&status=)
    POST   /api/orders/                 create (reserves stock)
    GET    /api/orders/<id>/
    DELETE /api/orders/<id>/            soft delete (draft/cancelled/trashed only)
    POST   /api/orders/<id>/status/     {"status": "...", "reason": "..."}
    POST   /api/orders/<id>/cancel/
    POST   /api/orders/<id>/trash/
    POST   /api/orders/<id>/restore/
    POST   /api/orders/<id>/payments/   order-level settlement (excess stays as credit)
    POST   /api/orders/<id>/invoice/    ask the tax authority for authorization
"""

from dataclasses import asdict

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ledger.models import LedgerEntry
from orders.models import Order
from orders.serializers import (
    InvoiceRecordSerializer,
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderPaymentCommandSerializer,
    OrderSerializer,
    OrderStatusCommandSerializer,
)
from orders.services.invoicing import TaxAuthorityClient, request_invoice
from orders.services.order_service import (
    OrderLineInput,
    cancel_order,
    change_status,
    create_order,
    restore_order,
    soft_delete_order,
    trash_order,
)
from receipts.services.intake import from_manual, settle_evidence


class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["workspace", "customer", "status"]
    search_fields = ["order_number", "customer__name"]
    ordering_fields = ["created_at", "order_number", "total"]

    tax_authority_client_class = TaxAuthorityClient

    def get_queryset(self):
        return (
            Order.objects.filter(deleted_at__isnull=True)
            .select_related("customer")
            .prefetch_related("items", "status_history", "invoice_records")
            .order_by("-created_at")
        )

    def get_serializer_class(self):
        if self.action == "create":
            return OrderCreateSerializer
        if self.action == "set_status":
            return OrderStatusCommandSerializer
        if self.action == "cancel":
            return OrderCancelSerializer
        if self.action == "payments":
            return OrderPaymentCommandSerializer
        return OrderSerializer

    def _respond(self, order, http_status=status.HTTP_200_OK):
        order = self.get_queryset().get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=http_status)

    def create(self, request, *args, **kwargs):
        s = OrderCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        order = create_order(
            workspace_id=data["workspace"],
            customer_id=data["customer_id"],
            items=[
                OrderLineInput(
                    product_id=line["product_id"],
                    variant_id=line.get("variant_id"),
                    quantity=line["quantity"],
                    unit_price=line.get("unit_price"),
                )
                for line in data["items"]
            ],
            status=data["status"],
            tax=data.get("tax"),
            discount=data.get("discount"),
            shipping=data.get("shipping"),
            notes=data.get("notes") or "",
            initial_payment=data.get("paid_amount"),
            payment_method=data["payment_method"],
            actor=request.user,
        )
        return self._respond(order, status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        order = self.get_object()
        soft_delete_order(order_id=order.pk, actor=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=OrderStatusCommandSerializer, responses=OrderSerializer)
    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        order = self.get_object()
        s = OrderStatusCommandSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        updated = change_status(
            order_id=order.pk,
            target_status=s.validated_data["status"],
            actor=request.user,
            reason=s.validated_data.get("reason") or "",
        )
        return self._respond(updated)

    @extend_schema(request=OrderCancelSerializer, responses=OrderSerializer)
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        order = self.get_object()
        s = OrderCancelSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        updated = cancel_order(
            order_id=order.pk, actor=request.user, reason=s.validated_data.get("reason") or ""
        )
        return self._respond(updated)

    @extend_schema(request=None, responses=OrderSerializer)
    @action(detail=True, methods=["post"], url_path="trash")
    def trash(self, request, pk=None):
        order = trash_order(order_id=self.get_object().pk, actor=request.user)
        return self._respond(order)

    @extend_schema(request=None, responses=OrderSerializer)
    @action(detail=True, methods=["post"], url_path="restore")
    def restore(self, request, pk=None):
        order = restore_order(order_id=self.get_object().pk, actor=request.user)
        return self._respond(order)

    @extend_schema(request=None, responses=InvoiceRecordSerializer)
    @action(detail=True, methods=["post"], url_path="invoice")
    def invoice(self, request, pk=None):
        order = self.get_object()
        record = request_invoice(
            order_id=order.pk,
            client=self.tax_authority_client_class(),
            actor=request.user,
        )
        return Response(InvoiceRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=OrderPaymentCommandSerializer)
    @action(detail=True, methods=["post"], url_path="payments")
    def payments(self, request, pk=None):
        order = self.get_object()
        s = OrderPaymentCommandSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        evidence = from_manual(
            amount=data["amount"],
            source_id=data.get("reference") or "",
            order_id=order.pk,
            customer_id=order.customer_id,
            method=data["method"],
        )
        result = settle_evidence(
            evidence,
            workspace_id=order.workspace_id,
            actor=request.user,
            reference_type=LedgerEntry.REF_PAYMENT,
            reference_id=data.get("reference") or "",
            description=data.get("description") or "",
        )
        return Response(asdict(result), status=status.HTTP_201_CREATED)
