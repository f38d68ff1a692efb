# customers/serializers/customer.py

from rest_framework import serializers

from customers.models import Customer
from customers.services.financials import get_score_label


class CustomerSerializer(serializers.ModelSerializer):
    """
    Customer CRUD serializer.

    current_balance and the derived stats are read-only: the balance moves
    only through the ledger, the stats only through recalculation.
    """

    has_debt = serializers.BooleanField(read_only=True)
    has_credit_balance = serializers.BooleanField(read_only=True)
    payment_score_label = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            "id",
            "workspace",
            "name",
            "email",
            "phone",
            "tax_id",
            "current_balance",
            "has_debt",
            "has_credit_balance",
            "debt_reminder_count",
            "payment_score",
            "payment_score_label",
            "order_count",
            "total_spent",
            "last_order_at",
            "last_payment_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "current_balance",
            "debt_reminder_count",
            "payment_score",
            "order_count",
            "total_spent",
            "last_order_at",
            "last_payment_at",
            "created_at",
            "updated_at",
        ]

    def get_payment_score_label(self, obj):
        return get_score_label(obj.payment_score)

    def validate_name(self, value):
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Name is required.")
        return value

    def validate(self, attrs):
        workspace = attrs.get("workspace") or getattr(self.instance, "workspace", None)
        email = (attrs.get("email") or "").strip().lower()
        if "email" in attrs:
            attrs["email"] = email

        if workspace and email:
            qs = Customer.objects.filter(workspace=workspace, email=email)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError(
                    {"email": "A customer with this email already exists in the workspace."}
                )
        return attrs
