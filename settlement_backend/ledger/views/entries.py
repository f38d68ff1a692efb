# ledger/views/entries.py

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, viewsets
from rest_framework.permissions import IsAuthenticated

from ledger.models import LedgerEntry
from ledger.serializers import LedgerEntrySerializer


class LedgerEntryViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Read-only: ledger entries are never edited or deleted."""

    queryset = LedgerEntry.objects.all().order_by("-created_at", "-id")
    serializer_class = LedgerEntrySerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["workspace", "customer", "entry_type", "reference_type"]
