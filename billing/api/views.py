from typing import Any, Dict, Optional, cast

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import viewsets
from rest_framework.decorators import action, api_view
from rest_framework.request import Request
from rest_framework.response import Response

from billing.engine import get_engine
from billing.types import InvoiceFilter

from .response import APIResponse
from .serializers import (
    AgingReportSerializer,
    ApplyTermsSerializer,
    CreditRequestSerializer,
    CreditSerializer,
    DateRangeSerializer,
    DepositCreateSerializer,
    DepositSummarySerializer,
    GenerateFromPlanSerializer,
    InternalNotesSerializer,
    InvoiceCreateSerializer,
    InvoiceFilterSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    MilestoneLinkSerializer,
    PaymentPlanTemplateSerializer,
    PaymentRequestSerializer,
    PaymentSerializer,
    PaymentTermsPresetSerializer,
    ProjectQuerySerializer,
    RecurringInvoiceSerializer,
    ReminderSerializer,
    ScheduledInvoiceSerializer,
    TaxDiscountSerializer,
)

ID_PARAM = OpenApiParameter(
    name="pk",
    description="Record ID",
    required=True,
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
)


def _validated(serializer_class, data, partial: bool = False) -> Dict[str, Any]:
    serializer = serializer_class(data=data, partial=partial)
    serializer.is_valid(raise_exception=True)
    return cast(Dict[str, Any], serializer.validated_data)


class EngineViewSet(viewsets.ViewSet):
    @property
    def engine(self):
        return get_engine()


# ------------------------------
# Invoices
# ------------------------------
@extend_schema_view(
    list=extend_schema(summary="Search invoices", parameters=[InvoiceFilterSerializer]),
    create=extend_schema(summary="Create draft invoice", request=InvoiceCreateSerializer,
                         responses={201: InvoiceSerializer}),
    retrieve=extend_schema(summary="Get invoice", parameters=[ID_PARAM], responses={200: InvoiceSerializer}),
    partial_update=extend_schema(summary="Edit draft invoice", request=InvoiceUpdateSerializer,
                                 parameters=[ID_PARAM], responses={200: InvoiceSerializer}),
    destroy=extend_schema(summary="Delete draft/cancelled invoice or void an issued one", parameters=[ID_PARAM]),
)
class InvoiceViewSet(EngineViewSet):

    def list(self, request: Request) -> Response:
        params = _validated(InvoiceFilterSerializer, request.query_params)
        criteria = InvoiceFilter(**params)
        invoices, total = self.engine.invoices.search(criteria)
        return APIResponse.paginated(
            InvoiceSerializer(invoices, many=True).data, total=total, limit=criteria.limit, offset=criteria.offset
        )

    def create(self, request: Request) -> Response:
        data = _validated(InvoiceCreateSerializer, request.data)
        invoice = self.engine.invoices.create(data)
        return APIResponse.created(InvoiceSerializer(invoice).data, message="Invoice created.")

    def retrieve(self, request: Request, pk: Optional[int] = None) -> Response:
        invoice = self.engine.invoices.get(pk)
        return APIResponse.success(InvoiceSerializer(invoice).data)

    def partial_update(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(InvoiceUpdateSerializer, request.data, partial=True)
        invoice = self.engine.invoices.update(pk, data)
        return APIResponse.success(InvoiceSerializer(invoice).data, message="Invoice updated.")

    def destroy(self, request: Request, pk: Optional[int] = None) -> Response:
        result = self.engine.invoices.delete_or_void(pk)
        return APIResponse.success({"action": result.value}, message=f"Invoice {result.value}.")

    @extend_schema(summary="Send invoice", parameters=[ID_PARAM], request=None, responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"])
    def send(self, request: Request, pk: Optional[int] = None) -> Response:
        invoice = self.engine.invoices.send(pk)
        return APIResponse.success(InvoiceSerializer(invoice).data, message="Invoice sent.")

    @extend_schema(summary="Record that the client viewed the invoice", parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def view(self, request: Request, pk: Optional[int] = None) -> Response:
        invoice = self.engine.invoices.mark_viewed(pk)
        return APIResponse.success(InvoiceSerializer(invoice).data)

    @extend_schema(
        summary="Payment history or record a payment",
        parameters=[ID_PARAM],
        request=PaymentRequestSerializer,
        responses={200: PaymentSerializer(many=True), 201: InvoiceSerializer},
    )
    @action(detail=True, methods=["get", "post"])
    def payments(self, request: Request, pk: Optional[int] = None) -> Response:
        if request.method == "GET":
            history = self.engine.invoices.get_payment_history(pk)
            return APIResponse.success(PaymentSerializer(history, many=True).data)

        data = _validated(PaymentRequestSerializer, request.data)
        invoice, payment = self.engine.invoices.record_payment(
            pk,
            data["amount"],
            data["payment_method"],
            reference=data.get("payment_reference"),
            notes=data.get("notes"),
        )
        return APIResponse.created(
            {"invoice": InvoiceSerializer(invoice).data, "payment": PaymentSerializer(payment).data},
            message="Payment recorded.",
        )

    @extend_schema(
        summary="Credits received or apply deposit credit",
        parameters=[ID_PARAM],
        request=CreditRequestSerializer,
        responses={200: CreditSerializer(many=True), 201: CreditSerializer},
    )
    @action(detail=True, methods=["get", "post"])
    def credits(self, request: Request, pk: Optional[int] = None) -> Response:
        if request.method == "GET":
            credits = self.engine.deposits.get_invoice_credits(pk)
            return APIResponse.success(
                CreditSerializer(credits, many=True).data,
                meta={"total": str(self.engine.deposits.get_total_credits(pk))},
            )

        data = _validated(CreditRequestSerializer, request.data)
        credit = self.engine.deposits.apply_credit(
            pk, data["deposit_invoice_id"], data["amount"], applied_by=data.get("applied_by")
        )
        return APIResponse.created(CreditSerializer(credit).data, message="Credit applied.")

    @extend_schema(summary="Duplicate invoice as a new draft", parameters=[ID_PARAM], request=None,
                   responses={201: InvoiceSerializer})
    @action(detail=True, methods=["post"])
    def duplicate(self, request: Request, pk: Optional[int] = None) -> Response:
        invoice = self.engine.invoices.duplicate(pk)
        return APIResponse.created(InvoiceSerializer(invoice).data, message="Invoice duplicated.")

    @extend_schema(summary="Set tax and discount on a draft", parameters=[ID_PARAM], request=TaxDiscountSerializer,
                   responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="tax-discount")
    def tax_discount(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(TaxDiscountSerializer, request.data)
        invoice = self.engine.invoices.update_tax_and_discount(
            pk, data.get("tax_rate"), data.get("discount_type"), data.get("discount_value")
        )
        return APIResponse.success(InvoiceSerializer(invoice).data, message="Totals recalculated.")

    @extend_schema(summary="Preview or apply the late fee", parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["get", "post"], url_path="late-fee")
    def late_fee(self, request: Request, pk: Optional[int] = None) -> Response:
        if request.method == "GET":
            invoice = self.engine.invoices.get(pk)
            fee = self.engine.late_fees.calculate_late_fee(invoice)
            return APIResponse.success({
                "late_fee": str(fee),
                "days_overdue": self.engine.late_fees.days_overdue(invoice),
                "applied_at": invoice.late_fee_applied_at,
            })

        invoice = self.engine.late_fees.apply_late_fee(pk)
        return APIResponse.success(InvoiceSerializer(invoice).data, message="Late fee applied.")

    @extend_schema(summary="Apply a payment terms preset", parameters=[ID_PARAM], request=ApplyTermsSerializer,
                   responses={200: InvoiceSerializer})
    @action(detail=True, methods=["post"], url_path="payment-terms")
    def payment_terms(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(ApplyTermsSerializer, request.data)
        invoice = self.engine.payment_terms.apply_payment_terms(pk, data["preset_id"])
        return APIResponse.success(InvoiceSerializer(invoice).data, message="Payment terms applied.")

    @extend_schema(summary="Update internal notes", parameters=[ID_PARAM], request=InternalNotesSerializer)
    @action(detail=True, methods=["post"], url_path="internal-notes")
    def internal_notes(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(InternalNotesSerializer, request.data)
        invoice = self.engine.invoices.update_internal_notes(pk, data["internal_notes"])
        return APIResponse.success(InvoiceSerializer(invoice).data)

    @extend_schema(summary="Link invoice to a milestone", parameters=[ID_PARAM], request=MilestoneLinkSerializer)
    @action(detail=True, methods=["post"])
    def milestone(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(MilestoneLinkSerializer, request.data)
        invoice = self.engine.invoices.link_invoice_to_milestone(pk, data["milestone_id"])
        return APIResponse.success(InvoiceSerializer(invoice).data)

    @extend_schema(summary="Reminder timetable", parameters=[ID_PARAM], request=None,
                   responses={200: ReminderSerializer(many=True)})
    @action(detail=True, methods=["get", "post"])
    def reminders(self, request: Request, pk: Optional[int] = None) -> Response:
        if request.method == "POST":
            self.engine.reminders.schedule_reminders(pk)
        reminders = self.engine.reminders.get_invoice_reminders(pk)
        return APIResponse.success(ReminderSerializer(reminders, many=True).data)


# ------------------------------
# Deposits
# ------------------------------
class DepositViewSet(EngineViewSet):

    @extend_schema(summary="Create deposit invoice", request=DepositCreateSerializer,
                   responses={201: InvoiceSerializer})
    def create(self, request: Request) -> Response:
        data = _validated(DepositCreateSerializer, request.data)
        invoice = self.engine.deposits.create_deposit_invoice(
            data["project_id"],
            data["client_id"],
            data["amount"],
            percentage=data.get("percentage"),
            description=data.get("description"),
        )
        return APIResponse.created(InvoiceSerializer(invoice).data, message="Deposit invoice created.")

    @extend_schema(
        summary="Paid deposits with credit left",
        parameters=[OpenApiParameter(name="project_id", type=int, required=True)],
        responses={200: DepositSummarySerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def available(self, request: Request) -> Response:
        params = _validated(ProjectQuerySerializer, request.query_params)
        deposits = self.engine.deposits.get_available_deposits(params["project_id"])
        return APIResponse.success(DepositSummarySerializer(deposits, many=True).data)


# ------------------------------
# Recurring and scheduled invoices
# ------------------------------
class RecurringInvoiceViewSet(EngineViewSet):

    def list(self, request: Request) -> Response:
        project_id = request.query_params.get("project_id")
        rules = self.engine.recurring.list_recurring(int(project_id) if project_id else None)
        return APIResponse.success(RecurringInvoiceSerializer(rules, many=True).data)

    @extend_schema(request=RecurringInvoiceSerializer, responses={201: RecurringInvoiceSerializer})
    def create(self, request: Request) -> Response:
        data = _validated(RecurringInvoiceSerializer, request.data)
        rule = self.engine.recurring.create_recurring(data)
        return APIResponse.created(RecurringInvoiceSerializer(rule).data)

    @extend_schema(parameters=[ID_PARAM])
    def retrieve(self, request: Request, pk: Optional[int] = None) -> Response:
        rule = self.engine.recurring.get_recurring(pk)
        return APIResponse.success(RecurringInvoiceSerializer(rule).data)

    @extend_schema(parameters=[ID_PARAM], request=RecurringInvoiceSerializer)
    def partial_update(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(RecurringInvoiceSerializer, request.data, partial=True)
        rule = self.engine.recurring.update_recurring(pk, data)
        return APIResponse.success(RecurringInvoiceSerializer(rule).data)

    @extend_schema(parameters=[ID_PARAM])
    def destroy(self, request: Request, pk: Optional[int] = None) -> Response:
        self.engine.recurring.delete_recurring(pk)
        return APIResponse.success(message="Recurring invoice deleted.")

    @extend_schema(parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def pause(self, request: Request, pk: Optional[int] = None) -> Response:
        rule = self.engine.recurring.pause(pk)
        return APIResponse.success(RecurringInvoiceSerializer(rule).data)

    @extend_schema(parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def resume(self, request: Request, pk: Optional[int] = None) -> Response:
        rule = self.engine.recurring.resume(pk)
        return APIResponse.success(RecurringInvoiceSerializer(rule).data)


class ScheduledInvoiceViewSet(EngineViewSet):

    def list(self, request: Request) -> Response:
        project_id = request.query_params.get("project_id")
        entries = self.engine.recurring.list_scheduled(int(project_id) if project_id else None)
        return APIResponse.success(ScheduledInvoiceSerializer(entries, many=True).data)

    @extend_schema(request=ScheduledInvoiceSerializer, responses={201: ScheduledInvoiceSerializer})
    def create(self, request: Request) -> Response:
        data = _validated(ScheduledInvoiceSerializer, request.data)
        entry = self.engine.recurring.schedule_invoice(data)
        return APIResponse.created(ScheduledInvoiceSerializer(entry).data)

    @extend_schema(parameters=[ID_PARAM])
    def retrieve(self, request: Request, pk: Optional[int] = None) -> Response:
        entry = self.engine.recurring.get_scheduled(pk)
        return APIResponse.success(ScheduledInvoiceSerializer(entry).data)

    @extend_schema(parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: Optional[int] = None) -> Response:
        entry = self.engine.recurring.cancel_scheduled(pk)
        return APIResponse.success(ScheduledInvoiceSerializer(entry).data, message="Scheduled invoice cancelled.")


@extend_schema(summary="Milestone completed: generate invoices waiting on it", request=None)
@api_view(["POST"])
def milestone_complete(request: Request, milestone_id: int) -> Response:
    engine = get_engine()
    generated = engine.recurring.fire_milestone(milestone_id)
    invoices = engine.invoices.get_invoices_by_milestone(milestone_id)
    return APIResponse.success(
        {"generated": generated, "invoices": InvoiceSerializer(invoices, many=True).data}
    )


# ------------------------------
# Payment terms and payment plans
# ------------------------------
class PaymentTermsViewSet(EngineViewSet):

    def list(self, request: Request) -> Response:
        presets = self.engine.payment_terms.list_presets()
        return APIResponse.success(PaymentTermsPresetSerializer(presets, many=True).data)

    @extend_schema(request=PaymentTermsPresetSerializer, responses={201: PaymentTermsPresetSerializer})
    def create(self, request: Request) -> Response:
        data = _validated(PaymentTermsPresetSerializer, request.data)
        preset = self.engine.payment_terms.create_preset(**data)
        return APIResponse.created(PaymentTermsPresetSerializer(preset).data)

    @extend_schema(parameters=[ID_PARAM])
    def retrieve(self, request: Request, pk: Optional[int] = None) -> Response:
        preset = self.engine.payment_terms.get_preset(pk)
        return APIResponse.success(PaymentTermsPresetSerializer(preset).data)


class PaymentPlanViewSet(EngineViewSet):

    def list(self, request: Request) -> Response:
        templates = self.engine.payment_plans.list_templates()
        return APIResponse.success(PaymentPlanTemplateSerializer(templates, many=True).data)

    @extend_schema(request=PaymentPlanTemplateSerializer, responses={201: PaymentPlanTemplateSerializer})
    def create(self, request: Request) -> Response:
        data = _validated(PaymentPlanTemplateSerializer, request.data)
        template = self.engine.payment_plans.create_template(
            data["name"], data["payments"], description=data.get("description"), is_default=data.get("is_default", False)
        )
        return APIResponse.created(PaymentPlanTemplateSerializer(template).data)

    @extend_schema(parameters=[ID_PARAM])
    def retrieve(self, request: Request, pk: Optional[int] = None) -> Response:
        template = self.engine.payment_plans.get_template(pk)
        return APIResponse.success(PaymentPlanTemplateSerializer(template).data)

    @extend_schema(parameters=[ID_PARAM])
    def destroy(self, request: Request, pk: Optional[int] = None) -> Response:
        self.engine.payment_plans.delete_template(pk)
        return APIResponse.success(message="Payment plan deleted.")

    @extend_schema(parameters=[ID_PARAM], request=GenerateFromPlanSerializer, responses={201: InvoiceSerializer(many=True)})
    @action(detail=True, methods=["post"])
    def generate(self, request: Request, pk: Optional[int] = None) -> Response:
        data = _validated(GenerateFromPlanSerializer, request.data)
        invoices = self.engine.payment_plans.generate_invoices_from_template(
            data["project_id"], data["client_id"], pk, data["total_amount"]
        )
        return APIResponse.created(InvoiceSerializer(invoices, many=True).data)


# ------------------------------
# Reminders and reports
# ------------------------------
class ReminderViewSet(EngineViewSet):

    @extend_schema(summary="Reminders due for dispatch", responses={200: ReminderSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def due(self, request: Request) -> Response:
        reminders = self.engine.reminders.process_reminders()
        return APIResponse.success(ReminderSerializer(reminders, many=True).data)

    @extend_schema(parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def sent(self, request: Request, pk: Optional[int] = None) -> Response:
        reminder = self.engine.reminders.mark_reminder_sent(pk)
        return APIResponse.success(ReminderSerializer(reminder).data)

    @extend_schema(parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def failed(self, request: Request, pk: Optional[int] = None) -> Response:
        reminder = self.engine.reminders.mark_reminder_failed(pk)
        return APIResponse.success(ReminderSerializer(reminder).data)

    @extend_schema(parameters=[ID_PARAM], request=None)
    @action(detail=True, methods=["post"])
    def skip(self, request: Request, pk: Optional[int] = None) -> Response:
        reminder = self.engine.reminders.skip_reminder(pk)
        return APIResponse.success(ReminderSerializer(reminder).data)


class ReportViewSet(EngineViewSet):

    @extend_schema(
        summary="Accounts receivable aging",
        parameters=[OpenApiParameter(name="client_id", type=int, required=False)],
        responses={200: AgingReportSerializer},
    )
    @action(detail=False, methods=["get"])
    def aging(self, request: Request) -> Response:
        client_id = request.query_params.get("client_id")
        report = self.engine.reporting.get_aging_report(int(client_id) if client_id else None)
        return APIResponse.success(AgingReportSerializer(report).data)

    @extend_schema(
        summary="Invoice statistics",
        parameters=[
            OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, required=False),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, required=False),
        ],
    )
    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        params = _validated(DateRangeSerializer, request.query_params)
        stats = self.engine.reporting.get_comprehensive_stats(params.get("date_from"), params.get("date_to"))
        return APIResponse.success(stats)
