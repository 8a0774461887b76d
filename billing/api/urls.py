from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    DepositViewSet,
    InvoiceViewSet,
    PaymentPlanViewSet,
    PaymentTermsViewSet,
    RecurringInvoiceViewSet,
    ReminderViewSet,
    ReportViewSet,
    ScheduledInvoiceViewSet,
    milestone_complete,
)

router = DefaultRouter()
router.register(r"invoices", InvoiceViewSet, basename="invoice")
router.register(r"deposits", DepositViewSet, basename="deposit")
router.register(r"recurring", RecurringInvoiceViewSet, basename="recurring")
router.register(r"scheduled", ScheduledInvoiceViewSet, basename="scheduled")
router.register(r"payment-terms", PaymentTermsViewSet, basename="payment-terms")
router.register(r"payment-plans", PaymentPlanViewSet, basename="payment-plan")
router.register(r"reminders", ReminderViewSet, basename="reminder")
router.register(r"reports", ReportViewSet, basename="report")

app_name = "billing_api"

urlpatterns = [
    path("", include(router.urls)),
    path("milestones/<int:milestone_id>/complete/", milestone_complete, name="milestone-complete"),
]
