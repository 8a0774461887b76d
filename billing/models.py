from decimal import Decimal
from typing import List

from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F

from .types import LineItem, PaymentPlanPayment, coerce_line_items, dump_line_items


class InvoiceQuerySet(models.QuerySet):
    def deposits(self):
        return self.filter(invoice_type=Invoice.InvoiceType.DEPOSIT)

    def outstanding(self):
        return self.filter(
            status__in=Invoice.OUTSTANDING_STATUSES,
            amount_total__gt=F('amount_paid'),
        )

    def overdue_candidates(self, today):
        return self.filter(
            status__in=[Invoice.Status.SENT, Invoice.Status.VIEWED, Invoice.Status.PARTIAL],
            due_date__lt=today,
        )

    def late_fee_candidates(self, today):
        return self.filter(
            status=Invoice.Status.OVERDUE,
            late_fee_applied_at__isnull=True,
            late_fee_rate__gt=0,
            due_date__lt=today,
        ).exclude(late_fee_type=Invoice.LateFeeType.NONE)


class Invoice(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        VIEWED = "viewed", "Viewed"
        PARTIAL = "partial", "Partially Paid"
        PAID = "paid", "Paid"
        OVERDUE = "overdue", "Overdue"
        CANCELLED = "cancelled", "Cancelled"

    class InvoiceType(models.TextChoices):
        STANDARD = "standard", "Standard"
        DEPOSIT = "deposit", "Deposit"

    class DiscountType(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage"
        FIXED = "fixed", "Fixed Amount"

    class LateFeeType(models.TextChoices):
        NONE = "none", "None"
        FLAT = "flat", "Flat Amount"
        PERCENTAGE = "percentage", "Percentage"
        DAILY_PERCENTAGE = "daily_percentage", "Daily Percentage"

    class SourceType(models.TextChoices):
        MANUAL = "manual", "Manual"
        DUPLICATE = "duplicate", "Duplicate"
        DEPOSIT = "deposit", "Deposit"
        RECURRING = "recurring", "Recurring Rule"
        SCHEDULED = "scheduled", "Scheduled Invoice"
        PAYMENT_PLAN = "payment_plan", "Payment Plan"
        MILESTONE = "milestone", "Milestone"

    OUTSTANDING_STATUSES = [Status.SENT, Status.VIEWED, Status.PARTIAL, Status.OVERDUE]
    CLOSED_STATUSES = [Status.PAID, Status.CANCELLED]

    invoice_number = models.CharField(max_length=50, unique=True)
    invoice_prefix = models.CharField(max_length=20, default="INV")
    invoice_sequence = models.PositiveIntegerField(default=0)

    # projects, clients and milestones live outside the billing engine
    project_id = models.PositiveIntegerField(db_index=True)
    client_id = models.PositiveIntegerField(db_index=True)
    milestone_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)

    amount_total = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default="USD")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)

    issued_date = models.DateField()
    due_date = models.DateField(null=True, blank=True, db_index=True)
    paid_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=50, blank=True)
    payment_reference = models.CharField(max_length=255, blank=True)

    line_items = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)

    business_name = models.CharField(max_length=255, blank=True)
    business_contact = models.CharField(max_length=255, blank=True)
    business_email = models.EmailField(blank=True)
    business_website = models.CharField(max_length=255, blank=True)
    venmo_handle = models.CharField(max_length=100, blank=True)
    paypal_email = models.EmailField(blank=True)

    bill_to_name = models.CharField(max_length=255, blank=True)
    bill_to_email = models.EmailField(blank=True)
    services_title = models.CharField(max_length=255, blank=True)
    services_description = models.TextField(blank=True)
    deliverables = models.JSONField(default=list, blank=True)
    features = models.TextField(blank=True)

    invoice_type = models.CharField(max_length=20, choices=InvoiceType.choices, default=InvoiceType.STANDARD)
    deposit_for_project_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)
    deposit_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    subtotal = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, blank=True)
    discount_value = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))

    late_fee_rate = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    late_fee_type = models.CharField(max_length=20, choices=LateFeeType.choices, default=LateFeeType.NONE)
    late_fee_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    late_fee_applied_at = models.DateTimeField(null=True, blank=True)

    payment_terms = models.ForeignKey(
        'PaymentTermsPreset', on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices"
    )
    payment_terms_name = models.CharField(max_length=100, blank=True)
    payment_plan = models.ForeignKey(
        'PaymentPlanTemplate', on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices"
    )

    source_type = models.CharField(max_length=20, choices=SourceType.choices, default=SourceType.MANUAL)
    source_id = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InvoiceQuerySet.as_manager()

    class Meta:
        db_table = "invoices"
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status', 'due_date'], name='invoice_status_due_idx'),
            models.Index(fields=['client_id', 'status'], name='invoice_client_status_idx'),
            models.Index(fields=['deposit_for_project_id', 'invoice_type', 'status'], name='invoice_deposit_lookup_idx'),
        ]

    def __str__(self):
        return f"{self.invoice_number} ({self.status})"

    def get_line_items(self) -> List[LineItem]:
        return coerce_line_items(self.line_items)

    def set_line_items(self, items) -> None:
        self.line_items = dump_line_items(coerce_line_items(items))

    @property
    def outstanding(self) -> Decimal:
        return self.amount_total - self.amount_paid

    @property
    def is_draft(self) -> bool:
        return self.status == self.Status.DRAFT

    @property
    def is_closed(self) -> bool:
        return self.status in self.CLOSED_STATUSES

    @property
    def is_deposit(self) -> bool:
        return self.invoice_type == self.InvoiceType.DEPOSIT


class InvoiceNumberSequence(models.Model):
    prefix = models.CharField(max_length=20, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "invoice_number_sequences"

    def __str__(self):
        return f"{self.prefix}: {self.last_value}"


class InvoiceCredit(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="credits")
    deposit_invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="credits_given")
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    applied_at = models.DateTimeField()
    applied_by = models.CharField(max_length=255, blank=True)

    class Meta:
        db_table = "invoice_credits"
        ordering = ['applied_at', 'id']

    def __str__(self):
        return f"Credit {self.amount} from #{self.deposit_invoice_id} to #{self.invoice_id}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Invoice credits are immutable once recorded")
        super().save(*args, **kwargs)


class InvoicePayment(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    payment_method = models.CharField(max_length=50)
    payment_reference = models.CharField(max_length=255, blank=True)
    payment_date = models.DateField()
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "invoice_payments"
        ordering = ['-payment_date', '-id']

    def __str__(self):
        return f"Payment {self.amount} on #{self.invoice_id}"


class RecurringInvoice(models.Model):
    class Frequency(models.TextChoices):
        WEEKLY = "weekly", "Weekly"
        MONTHLY = "monthly", "Monthly"
        QUARTERLY = "quarterly", "Quarterly"

    project_id = models.PositiveIntegerField(db_index=True)
    client_id = models.PositiveIntegerField(db_index=True)
    frequency = models.CharField(max_length=20, choices=Frequency.choices, default=Frequency.MONTHLY)
    day_of_month = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    day_of_week = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MaxValueValidator(6)], help_text="0 = Sunday"
    )
    line_items = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    next_generation_date = models.DateField(db_index=True)
    last_generated_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "recurring_invoices"
        ordering = ['next_generation_date', 'id']
        indexes = [
            models.Index(fields=['is_active', 'next_generation_date'], name='recurring_due_idx'),
        ]

    def __str__(self):
        return f"Recurring #{self.id} ({self.frequency}) for project {self.project_id}"

    def get_line_items(self) -> List[LineItem]:
        return coerce_line_items(self.line_items)

    def set_line_items(self, items) -> None:
        self.line_items = dump_line_items(coerce_line_items(items))


class ScheduledInvoice(models.Model):
    class TriggerType(models.TextChoices):
        DATE = "date", "Date"
        MILESTONE_COMPLETE = "milestone_complete", "Milestone Complete"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        GENERATED = "generated", "Generated"
        CANCELLED = "cancelled", "Cancelled"

    project_id = models.PositiveIntegerField(db_index=True)
    client_id = models.PositiveIntegerField(db_index=True)
    scheduled_date = models.DateField(db_index=True)
    trigger_type = models.CharField(max_length=30, choices=TriggerType.choices, default=TriggerType.DATE)
    trigger_milestone_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)
    line_items = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    generated_invoice = models.ForeignKey(
        Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name="scheduled_sources"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "scheduled_invoices"
        ordering = ['scheduled_date', 'id']

    def __str__(self):
        return f"Scheduled #{self.id} on {self.scheduled_date} ({self.status})"

    def get_line_items(self) -> List[LineItem]:
        return coerce_line_items(self.line_items)

    def set_line_items(self, items) -> None:
        self.line_items = dump_line_items(coerce_line_items(items))


class InvoiceReminder(models.Model):
    class ReminderType(models.TextChoices):
        UPCOMING = "upcoming", "Upcoming"
        DUE = "due", "Due Today"
        OVERDUE_3 = "overdue_3", "3 Days Overdue"
        OVERDUE_7 = "overdue_7", "7 Days Overdue"
        OVERDUE_14 = "overdue_14", "14 Days Overdue"
        OVERDUE_30 = "overdue_30", "30 Days Overdue"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SENT = "sent", "Sent"
        SKIPPED = "skipped", "Skipped"
        FAILED = "failed", "Failed"

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="reminders")
    reminder_type = models.CharField(max_length=20, choices=ReminderType.choices)
    scheduled_date = models.DateField(db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "invoice_reminders"
        ordering = ['scheduled_date', 'id']
        unique_together = [('invoice', 'reminder_type')]

    def __str__(self):
        return f"{self.reminder_type} reminder for #{self.invoice_id} on {self.scheduled_date}"


class PaymentTermsPreset(models.Model):
    name = models.CharField(max_length=100)
    days_until_due = models.PositiveIntegerField(default=30)
    description = models.TextField(blank=True)
    late_fee_rate = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    late_fee_type = models.CharField(
        max_length=20, choices=Invoice.LateFeeType.choices, default=Invoice.LateFeeType.NONE
    )
    late_fee_flat_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    grace_period_days = models.PositiveIntegerField(default=0)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "payment_terms_presets"
        ordering = ['days_until_due', 'name']

    def __str__(self):
        return self.name


class PaymentPlanTemplate(models.Model):
    class Trigger(models.TextChoices):
        UPFRONT = "upfront", "Upfront"
        MIDPOINT = "midpoint", "Midpoint"
        COMPLETION = "completion", "Completion"
        MILESTONE = "milestone", "Milestone"
        DATE = "date", "Date"

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    payments = models.JSONField(default=list, encoder=DjangoJSONEncoder)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "payment_plan_templates"
        ordering = ['name']

    def __str__(self):
        return self.name

    def get_payments(self) -> List[PaymentPlanPayment]:
        return [PaymentPlanPayment.from_dict(p) for p in self.payments or []]

    def set_payments(self, payments) -> None:
        self.payments = [
            (p if isinstance(p, PaymentPlanPayment) else PaymentPlanPayment.from_dict(p)).to_dict()
            for p in payments
        ]
