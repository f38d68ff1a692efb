# receipts/views/receipt.py

"""
RECEIPT ENDPOINTS

    POST   /api/receipts/                 multipart upload (may auto-apply)
    GET    /api/receipts/?customer=&status=
    POST   /api/receipts/<id>/apply/      {"order_id"?: uuid, "amount"?: "0.00"}
    POST   /api/receipts/<id>/reject/     {"reason": "..."}
    DELETE /api/receipts/<id>/            reverses the payment if it was applied
"""

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from receipts.models import Receipt
from receipts.serializers import (
    ReceiptApplySerializer,
    ReceiptRejectSerializer,
    ReceiptSerializer,
    ReceiptUploadSerializer,
)
from receipts.services.receipt_service import (
    apply_receipt,
    delete_receipt,
    reject_receipt,
    upload_receipt,
)
from receipts.services.vision import VisionClient


class ReceiptViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Receipt.objects.all().order_by("-created_at")
    serializer_class = ReceiptSerializer
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["workspace", "customer", "order", "status"]

    vision_client_class = VisionClient

    def get_vision_client(self):
        client = self.vision_client_class()
        return client if getattr(client, "is_configured", True) else None

    @extend_schema(request=ReceiptUploadSerializer, responses=ReceiptSerializer)
    def create(self, request, *args, **kwargs):
        s = ReceiptUploadSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        upload = data["file"]

        receipt = upload_receipt(
            customer_id=data["customer_id"],
            content=upload.read(),
            file_name=upload.name,
            file_type=getattr(upload, "content_type", "") or "",
            declared_amount=data.get("declared_amount"),
            order_id=data.get("order_id"),
            payment_method=data["payment_method"],
            auto_detect=data.get("auto_detect", True),
            vision_client=self.get_vision_client() if data.get("auto_detect", True) else None,
            actor=request.user,
        )
        return Response(ReceiptSerializer(receipt).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=ReceiptApplySerializer, responses=ReceiptSerializer)
    @action(detail=True, methods=["post"], url_path="apply")
    def apply(self, request, pk=None):
        receipt = self.get_object()
        s = ReceiptApplySerializer(data=request.data)
        s.is_valid(raise_exception=True)
        updated = apply_receipt(
            receipt_id=receipt.pk,
            order_id=s.validated_data.get("order_id"),
            amount=s.validated_data.get("amount"),
            actor=request.user,
        )
        return Response(ReceiptSerializer(updated).data)

    @extend_schema(request=ReceiptRejectSerializer, responses=ReceiptSerializer)
    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, pk=None):
        receipt = self.get_object()
        s = ReceiptRejectSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        updated = reject_receipt(
            receipt_id=receipt.pk,
            reason=s.validated_data.get("reason") or "",
            actor=request.user,
        )
        return Response(ReceiptSerializer(updated).data)

    def destroy(self, request, pk=None):
        receipt = self.get_object()
        result = delete_receipt(receipt_id=receipt.pk, actor=request.user)
        return Response(
            {
                "receipt_id": result["receipt_id"],
                "reversed": result["reversed"],
                "reversal_entry_id": result["reversal_entry_id"],
                "reversed_amount": result["reversed_amount"],
            },
            status=status.HTTP_200_OK,
        )
