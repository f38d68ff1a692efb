# payments/urls.py
"""
WEBHOOK URLS

Mounted in backend/urls.py under /api/webhooks/:
- POST /api/webhooks/mercadopago/<workspace_id>/
- POST /api/webhooks/paystack/<workspace_id>/
"""

from django.urls import path

from payments.views.webhooks import MercadoPagoWebhookView, PaystackWebhookView

app_name = "payments"

urlpatterns = [
    path(
        "mercadopago/<uuid:workspace_id>/",
        MercadoPagoWebhookView.as_view(),
        name="mercadopago-webhook",
    ),
    path(
        "paystack/<uuid:workspace_id>/",
        PaystackWebhookView.as_view(),
        name="paystack-webhook",
    ),
]
