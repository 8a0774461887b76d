from decimal import Decimal
from rest_framework import serializers

from billing.models import (
    Invoice, InvoiceCredit, InvoicePayment, InvoiceReminder,
    PaymentPlanTemplate, PaymentTermsPreset, RecurringInvoice, ScheduledInvoice,
)

MONEY = dict(max_digits=15, decimal_places=2)
RATE = dict(max_digits=7, decimal_places=2, min_value=Decimal("0"))


class LineItemSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500, min_length=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("1"))
    rate = serializers.DecimalField(**MONEY)
    amount = serializers.DecimalField(**MONEY, required=False)
    tax_rate = serializers.DecimalField(**RATE, required=False, allow_null=True)
    discount_type = serializers.ChoiceField(choices=Invoice.DiscountType.choices, required=False, allow_null=True)
    discount_value = serializers.DecimalField(**MONEY, required=False, allow_null=True, min_value=Decimal("0"))


class InvoiceOverridesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
    terms = serializers.CharField(required=False, allow_blank=True)
    currency = serializers.CharField(max_length=3, required=False)
    business_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    business_contact = serializers.CharField(max_length=255, required=False, allow_blank=True)
    business_email = serializers.EmailField(required=False, allow_blank=True)
    business_website = serializers.CharField(max_length=255, required=False, allow_blank=True)
    venmo_handle = serializers.CharField(max_length=100, required=False, allow_blank=True)
    paypal_email = serializers.EmailField(required=False, allow_blank=True)
    bill_to_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    bill_to_email = serializers.EmailField(required=False, allow_blank=True)
    services_title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    services_description = serializers.CharField(required=False, allow_blank=True)
    deliverables = serializers.ListField(child=serializers.CharField(), required=False)
    features = serializers.CharField(required=False, allow_blank=True)


class InvoiceCreateSerializer(InvoiceOverridesSerializer):
    project_id = serializers.IntegerField(min_value=1)
    client_id = serializers.IntegerField(min_value=1)
    milestone_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    prefix = serializers.RegexField(r"^[A-Z0-9]{1,20}$", required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    line_items = LineItemSerializer(many=True, allow_empty=False)


class InvoiceUpdateSerializer(InvoiceOverridesSerializer):
    due_date = serializers.DateField(required=False, allow_null=True)
    line_items = LineItemSerializer(many=True, required=False, allow_empty=False)


class InvoiceSerializer(serializers.ModelSerializer):
    outstanding = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        exclude = ["payment_terms", "payment_plan"]

    def get_outstanding(self, obj) -> str:
        return str(obj.outstanding)


class PaymentRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(**MONEY)
    payment_method = serializers.CharField(max_length=50)
    payment_reference = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoicePayment
        fields = ["id", "invoice", "amount", "payment_method", "payment_reference", "payment_date", "notes", "created_at"]


class CreditRequestSerializer(serializers.Serializer):
    deposit_invoice_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(**MONEY)
    applied_by = serializers.CharField(max_length=255, required=False, allow_blank=True)


class CreditSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceCredit
        fields = ["id", "invoice", "deposit_invoice", "amount", "applied_at", "applied_by"]


class TaxDiscountSerializer(serializers.Serializer):
    tax_rate = serializers.DecimalField(**RATE, required=False, allow_null=True)
    discount_type = serializers.ChoiceField(choices=Invoice.DiscountType.choices, required=False, allow_null=True)
    discount_value = serializers.DecimalField(**MONEY, required=False, allow_null=True, min_value=Decimal("0"))


class InternalNotesSerializer(serializers.Serializer):
    internal_notes = serializers.CharField(allow_blank=True)


class ApplyTermsSerializer(serializers.Serializer):
    preset_id = serializers.IntegerField(min_value=1)


class MilestoneLinkSerializer(serializers.Serializer):
    milestone_id = serializers.IntegerField(min_value=1)


class DepositCreateSerializer(serializers.Serializer):
    project_id = serializers.IntegerField(min_value=1)
    client_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(**MONEY)
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)


class DepositSummarySerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField()
    invoice_number = serializers.CharField()
    total_amount = serializers.DecimalField(**MONEY)
    applied_amount = serializers.DecimalField(**MONEY)
    available_amount = serializers.DecimalField(**MONEY)
    paid_date = serializers.DateField(allow_null=True)


class ReminderSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceReminder
        fields = ["id", "invoice", "reminder_type", "scheduled_date", "sent_at", "status"]


class RecurringInvoiceSerializer(serializers.ModelSerializer):
    line_items = LineItemSerializer(many=True, allow_empty=False)

    class Meta:
        model = RecurringInvoice
        fields = [
            "id", "project_id", "client_id", "frequency", "day_of_month", "day_of_week",
            "line_items", "notes", "terms", "start_date", "end_date",
            "next_generation_date", "last_generated_at", "is_active",
        ]
        read_only_fields = ["id", "next_generation_date", "last_generated_at", "is_active"]


class ScheduledInvoiceSerializer(serializers.ModelSerializer):
    line_items = LineItemSerializer(many=True, allow_empty=False)

    class Meta:
        model = ScheduledInvoice
        fields = [
            "id", "project_id", "client_id", "scheduled_date", "trigger_type", "trigger_milestone_id",
            "line_items", "notes", "terms", "status", "generated_invoice",
        ]
        read_only_fields = ["id", "status", "generated_invoice"]


class PaymentTermsPresetSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentTermsPreset
        fields = [
            "id", "name", "days_until_due", "description", "late_fee_rate", "late_fee_type",
            "late_fee_flat_amount", "grace_period_days", "is_default",
        ]
        read_only_fields = ["id"]
        extra_kwargs = {"days_until_due": {"required": True}}


class PlanPaymentSerializer(serializers.Serializer):
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0.01"))
    trigger = serializers.ChoiceField(choices=PaymentPlanTemplate.Trigger.choices)
    label = serializers.CharField(max_length=255, required=False, allow_blank=True)
    milestone_id = serializers.IntegerField(required=False, allow_null=True)
    days_after_start = serializers.IntegerField(required=False, allow_null=True)


class PaymentPlanTemplateSerializer(serializers.ModelSerializer):
    payments = PlanPaymentSerializer(many=True, allow_empty=False)

    class Meta:
        model = PaymentPlanTemplate
        fields = ["id", "name", "description", "payments", "is_default", "created_at"]
        read_only_fields = ["id", "created_at"]


class GenerateFromPlanSerializer(serializers.Serializer):
    project_id = serializers.IntegerField(min_value=1)
    client_id = serializers.IntegerField(min_value=1)
    total_amount = serializers.DecimalField(**MONEY)


class AgingBucketSerializer(serializers.Serializer):
    label = serializers.CharField()
    count = serializers.IntegerField()
    total_amount = serializers.DecimalField(**MONEY)
    invoices = InvoiceSerializer(many=True)


class AgingReportSerializer(serializers.Serializer):
    generated_at = serializers.DateTimeField()
    total_outstanding = serializers.DecimalField(**MONEY)
    buckets = AgingBucketSerializer(many=True)


class InvoiceFilterSerializer(serializers.Serializer):
    client_id = serializers.IntegerField(required=False)
    project_id = serializers.IntegerField(required=False)
    status = serializers.CharField(required=False, help_text="One status or a comma-separated list")
    invoice_type = serializers.ChoiceField(choices=Invoice.InvoiceType.choices, required=False)
    search = serializers.CharField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    due_date_from = serializers.DateField(required=False)
    due_date_to = serializers.DateField(required=False)
    min_amount = serializers.DecimalField(**MONEY, required=False)
    max_amount = serializers.DecimalField(**MONEY, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=500, default=50)
    offset = serializers.IntegerField(min_value=0, default=0)

    def validate_status(self, value):
        statuses = [s.strip() for s in value.split(",") if s.strip()]
        unknown = [s for s in statuses if s not in Invoice.Status.values]
        if unknown:
            raise serializers.ValidationError(f"Unknown status: {', '.join(unknown)}")
        return statuses


class ProjectQuerySerializer(serializers.Serializer):
    project_id = serializers.IntegerField(min_value=1)


class DateRangeSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
