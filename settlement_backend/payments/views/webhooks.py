# payments/views/webhooks.py

"""
Provider webhook endpoints.

Responses:
- 401 when the signature does not verify (nothing is stored)
- 200 for everything else, including duplicates and processing failures;
  the real outcome lives on the WebhookInbox row.
"""

from __future__ import annotations

import logging

from django.apps import apps
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from payments.services.adapters import MercadoPagoAdapter, PaystackAdapter
from payments.services.adapters.base import InvalidSignatureError
from payments.services.ingest import WebhookIngestor

logger = logging.getLogger(__name__)


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


class BaseWebhookView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]
    parser_classes = [JSONParser]
    throttle_classes = [WebhookThrottle]

    adapter_class = None

    def get_ingestor(self) -> WebhookIngestor:
        queue = apps.get_app_config("payments").inbox_queue
        return WebhookIngestor(adapter=self.adapter_class(), queue=queue)

    def post(self, request, workspace_id, *args, **kwargs):
        raw_body = getattr(request, "body", b"") or b""
        provider = self.adapter_class.provider

        logger.info(
            "Webhook received",
            extra={"provider": provider, "workspace_id": str(workspace_id)},
        )

        try:
            result = self.get_ingestor().ingest(
                workspace_id=workspace_id,
                headers=request.headers,
                query=request.query_params,
                raw_body=raw_body,
            )
        except InvalidSignatureError:
            return Response(
                {"ok": False, "detail": "Invalid signature"},
                status=status.HTTP_401_UNAUTHORIZED,
            )
        except Exception:
            logger.exception(
                "Webhook ingestion failed",
                extra={"provider": provider, "workspace_id": str(workspace_id)},
            )
            return Response({"ok": True, "detail": "error logged"}, status=status.HTTP_200_OK)

        return Response(
            {"ok": True, "detail": result.detail, "inbox_id": result.inbox_id or None},
            status=status.HTTP_200_OK,
        )


class MercadoPagoWebhookView(BaseWebhookView):
    adapter_class = MercadoPagoAdapter


class PaystackWebhookView(BaseWebhookView):
    adapter_class = PaystackAdapter
