# inventory/views/stock.py

"""
STOCK ENDPOINTS

    /api/inventory/stock-items/                 list / create / retrieve
    /api/inventory/stock-items/low-stock/       available <= low_threshold
    /api/inventory/stock-items/<id>/adjust/     audited quantity change
    /api/inventory/movements/                   audit trail (read-only)
    /api/inventory/reservations/                holds (read-only)
"""

from django.db import transaction
from django.db.models import F
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.models import StockItem, StockMovement, StockReservation
from inventory.serializers import (
    StockAdjustmentCommandSerializer,
    StockItemSerializer,
    StockMovementSerializer,
    StockReservationSerializer,
)
from inventory.services.stock_adjustments import adjust_stock


class StockItemViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = StockItem.objects.select_related("product", "variant").order_by("id")
    serializer_class = StockItemSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["product", "variant", "product__workspace"]

    @transaction.atomic
    def perform_create(self, serializer):
        initial = serializer.validated_data.pop("initial_quantity", 0) or 0
        item = serializer.save(quantity=0, reserved=0)
        if initial > 0:
            adjust_stock(
                stock_item_id=item.pk,
                quantity_delta=initial,
                actor=self.request.user,
                reason="Initial stock",
                restock=True,
            )
            item.refresh_from_db()

    def perform_update(self, serializer):
        serializer.validated_data.pop("initial_quantity", None)
        serializer.save()

    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        qs = self.filter_queryset(self.get_queryset()).filter(
            quantity__lte=F("reserved") + F("low_threshold")
        )
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(StockItemSerializer(page, many=True).data)
        return Response(StockItemSerializer(qs, many=True).data)

    @extend_schema(request=StockAdjustmentCommandSerializer, responses=StockMovementSerializer)
    @action(detail=True, methods=["post"], url_path="adjust")
    def adjust(self, request, pk=None):
        item = self.get_object()
        s = StockAdjustmentCommandSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        result = adjust_stock(
            stock_item_id=item.pk,
            quantity_delta=s.validated_data["quantity_delta"],
            actor=request.user,
            reason=s.validated_data["reason"],
            restock=s.validated_data.get("restock", False),
        )
        return Response(
            {
                "stock_item": StockItemSerializer(result.stock_item).data,
                "movement": StockMovementSerializer(result.movement).data,
            },
            status=status.HTTP_200_OK,
        )


class StockMovementViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = StockMovement.objects.all().order_by("-created_at", "-id")
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["stock_item", "movement_type", "reference_type", "reference_id"]


class StockReservationViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = StockReservation.objects.all().order_by("-created_at")
    serializer_class = StockReservationSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["order", "stock_item", "status"]
