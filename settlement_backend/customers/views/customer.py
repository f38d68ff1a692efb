# customers/views/customer.py

"""
CUSTOMER VIEWSET

Purpose:
- Customer CRUD (delete is a soft delete)
- Read-only financial views backed by the ledger:
    GET  /api/customers/<id>/balance/
    GET  /api/customers/<id>/ledger/?entry_type=&limit=&offset=
    GET  /api/customers/<id>/debt-summary/
- Maintenance:
    POST /api/customers/<id>/recalculate/
    POST /api/customers/<id>/apply-credit/   (admin)
"""

from dataclasses import asdict

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from customers.models import Customer
from customers.serializers import CustomerSerializer
from customers.services.financials import get_score_label, recalculate_customer_financials
from ledger.serializers import LedgerEntrySerializer
from ledger.services.ledger_service import (
    get_customer_balance,
    get_debt_summary,
    get_ledger_history,
)
from ledger.services.settlement import apply_standing_credit
from orders.serializers import OrderSummarySerializer
from payments.serializers import PaymentSerializer


class CustomerViewSet(viewsets.ModelViewSet):
    serializer_class = CustomerSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["workspace"]
    search_fields = ["name", "email", "phone", "tax_id"]
    ordering_fields = ["name", "current_balance", "payment_score", "created_at"]

    def get_queryset(self):
        qs = Customer.objects.filter(deleted_at__isnull=True)
        if self.request.query_params.get("has_debt") in ("1", "true", "True"):
            qs = qs.filter(current_balance__gt=0)
        return qs

    def get_permissions(self):
        if self.action == "apply_credit":
            return [IsAuthenticated(), IsAdminUser()]
        return super().get_permissions()

    def perform_destroy(self, instance):
        instance.deleted_at = timezone.now()
        instance.save(update_fields=["deleted_at", "updated_at"])

    # --------------------------------------------------
    # READS
    # --------------------------------------------------

    @action(detail=True, methods=["get"], url_path="balance")
    def balance(self, request, pk=None):
        customer = self.get_object()
        return Response(get_customer_balance(customer_id=customer.pk))

    @extend_schema(
        parameters=[
            OpenApiParameter("entry_type", str, description="debit | credit"),
            OpenApiParameter("limit", int),
            OpenApiParameter("offset", int),
        ]
    )
    @action(detail=True, methods=["get"], url_path="ledger")
    def ledger(self, request, pk=None):
        customer = self.get_object()
        params = request.query_params
        try:
            limit = int(params.get("limit") or 50)
            offset = int(params.get("offset") or 0)
        except ValueError:
            limit, offset = 50, 0

        history = get_ledger_history(
            customer_id=customer.pk,
            entry_type=params.get("entry_type") or None,
            limit=limit,
            offset=offset,
        )
        return Response(
            {
                **{k: history[k] for k in ("count", "limit", "offset")},
                "results": LedgerEntrySerializer(history["results"], many=True).data,
            }
        )

    @action(detail=True, methods=["get"], url_path="debt-summary")
    def debt_summary(self, request, pk=None):
        customer = self.get_object()
        summary = get_debt_summary(customer_id=customer.pk)
        return Response(
            {
                **{k: summary[k] for k in ("customer_id", "balance", "has_debt", "has_credit_balance")},
                "total_pending": summary["total_pending"],
                "unpaid_orders": OrderSummarySerializer(summary["unpaid_orders"], many=True).data,
                "recent_payments": PaymentSerializer(summary["recent_payments"], many=True).data,
                "payment_score": customer.payment_score,
                "payment_score_label": get_score_label(customer.payment_score),
            }
        )

    # --------------------------------------------------
    # MAINTENANCE
    # --------------------------------------------------

    @action(detail=True, methods=["post"], url_path="recalculate")
    def recalculate(self, request, pk=None):
        customer = recalculate_customer_financials(customer_id=self.get_object().pk)
        return Response(CustomerSerializer(customer).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="apply-credit")
    def apply_credit(self, request, pk=None):
        customer = self.get_object()
        result = apply_standing_credit(customer_id=customer.pk, actor=request.user)
        return Response(asdict(result), status=status.HTTP_200_OK)
