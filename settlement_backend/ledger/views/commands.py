# ledger/views/commands.py

"""
LEDGER COMMAND ENDPOINTS

POST /api/ledger/payments/     manual payment (order-level or FIFO)
POST /api/ledger/adjustments/  manual debit/credit correction (admin)
POST /api/ledger/write-offs/   forgive debt (admin)

Domain errors propagate to backend.api_errors.
"""

from dataclasses import asdict

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import NotFoundError
from customers.models import Customer
from ledger.models import LedgerEntry
from ledger.serializers import (
    AdjustmentCommandSerializer,
    PaymentCommandSerializer,
    WriteOffCommandSerializer,
)
from ledger.services.ledger_service import create_adjustment, write_off_debt
from receipts.services.intake import from_manual, settle_evidence


class PaymentView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=PaymentCommandSerializer)
    def post(self, request):
        s = PaymentCommandSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        customer = Customer.objects.filter(pk=data["customer_id"]).first()
        if customer is None:
            raise NotFoundError("Customer not found", code="CUSTOMER_NOT_FOUND")

        evidence = from_manual(
            amount=data["amount"],
            source_id=data.get("reference") or "",
            order_id=data.get("order_id"),
            customer_id=customer.pk,
            method=data["method"],
        )
        result = settle_evidence(
            evidence,
            workspace_id=customer.workspace_id,
            actor=request.user,
            reference_type=LedgerEntry.REF_PAYMENT,
            reference_id=data.get("reference") or "",
            description=data.get("description") or "",
        )
        return Response(asdict(result), status=status.HTTP_201_CREATED)


def _append_payload(result) -> dict:
    return {
        "entry_id": str(result.entry_id),
        "previous_balance": result.previous_balance,
        "new_balance": result.new_balance,
    }


class AdjustmentView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(request=AdjustmentCommandSerializer)
    def post(self, request):
        s = AdjustmentCommandSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        result = create_adjustment(actor=request.user, **s.validated_data)
        return Response(_append_payload(result), status=status.HTTP_201_CREATED)


class WriteOffView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(request=WriteOffCommandSerializer)
    def post(self, request):
        s = WriteOffCommandSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        result = write_off_debt(
            customer_id=data["customer_id"],
            amount=data.get("amount"),
            reason=data.get("reason") or "",
            actor=request.user,
        )
        return Response(_append_payload(result), status=status.HTTP_201_CREATED)
