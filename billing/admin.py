from django.contrib import admin
from .models import (
    Invoice, InvoiceCredit, InvoicePayment, InvoiceReminder, InvoiceNumberSequence,
    RecurringInvoice, ScheduledInvoice, PaymentTermsPreset, PaymentPlanTemplate,
)


class ReadOnlyAdminMixin:
    """Ledger rows are written by the billing services only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'client_id', 'project_id', 'status', 'amount_total', 'amount_paid', 'due_date')
    list_filter = ('status', 'invoice_type', 'source_type')
    search_fields = ('invoice_number', 'notes')
    readonly_fields = ('invoice_number', 'amount_paid', 'status', 'paid_date', 'late_fee_applied_at')

@admin.register(InvoiceCredit)
class InvoiceCreditAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ('invoice', 'deposit_invoice', 'amount', 'applied_at', 'applied_by')

@admin.register(InvoicePayment)
class InvoicePaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ('invoice', 'amount', 'payment_method', 'payment_date')
    list_filter = ('payment_method',)

@admin.register(InvoiceReminder)
class InvoiceReminderAdmin(admin.ModelAdmin):
    list_display = ('invoice', 'reminder_type', 'scheduled_date', 'status', 'sent_at')
    list_filter = ('status', 'reminder_type')

@admin.register(RecurringInvoice)
class RecurringInvoiceAdmin(admin.ModelAdmin):
    list_display = ('id', 'project_id', 'client_id', 'frequency', 'next_generation_date', 'is_active')
    list_filter = ('frequency', 'is_active')

@admin.register(ScheduledInvoice)
class ScheduledInvoiceAdmin(admin.ModelAdmin):
    list_display = ('id', 'project_id', 'scheduled_date', 'trigger_type', 'status', 'generated_invoice')
    list_filter = ('status', 'trigger_type')

@admin.register(PaymentTermsPreset)
class PaymentTermsPresetAdmin(admin.ModelAdmin):
    list_display = ('name', 'days_until_due', 'late_fee_type', 'late_fee_rate', 'is_default')

@admin.register(PaymentPlanTemplate)
class PaymentPlanTemplateAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_default', 'created_at')

admin.site.register(InvoiceNumberSequence)
