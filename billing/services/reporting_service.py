import logging
from typing import Any, Dict

from django.db.models import Avg, Count, F, Q, Sum
from django.db.models.functions import TruncMonth

from ..models import Invoice
from ..types import AgingBucket, AgingReport
from ..utils import ZERO, days_between, round_money
from .base import BaseService

logger = logging.getLogger(__name__)


class ReportingService(BaseService):
    AGING_BUCKETS = ('current', '1-30', '31-60', '61-90', '90+')

    @staticmethod
    def bucket_for(days_overdue: int) -> str:
        if days_overdue <= 0:
            return 'current'
        if days_overdue <= 30:
            return '1-30'
        if days_overdue <= 60:
            return '31-60'
        if days_overdue <= 90:
            return '61-90'
        return '90+'

    def get_aging_report(self, client_id=None) -> AgingReport:
        today = self.today()
        qs = Invoice.objects.outstanding().order_by(F('due_date').asc(nulls_first=True), 'id')
        if client_id is not None:
            qs = qs.filter(client_id=client_id)

        buckets = {label: AgingBucket(label=label) for label in self.AGING_BUCKETS}
        total_outstanding = ZERO
        for invoice in qs:
            days_overdue = days_between(invoice.due_date, today) if invoice.due_date else 0
            outstanding = invoice.amount_total - invoice.amount_paid
            bucket = buckets[self.bucket_for(days_overdue)]
            bucket.count += 1
            bucket.total_amount += outstanding
            bucket.invoices.append(invoice)
            total_outstanding += outstanding

        for bucket in buckets.values():
            bucket.total_amount = round_money(bucket.total_amount)

        return AgingReport(
            generated_at=self.now(),
            total_outstanding=round_money(total_outstanding),
            buckets=[buckets[label] for label in self.AGING_BUCKETS],
        )

    def get_invoice_stats(self, client_id=None) -> Dict[str, Any]:
        qs = Invoice.objects.all()
        if client_id is not None:
            qs = qs.filter(client_id=client_id)
        row = qs.aggregate(
            total_invoices=Count('id'),
            total_amount=Sum('amount_total'),
            total_paid=Sum('amount_paid'),
            overdue=Count('id', filter=Q(status=Invoice.Status.OVERDUE)),
        )
        total_amount = row['total_amount'] or ZERO
        total_paid = row['total_paid'] or ZERO
        return {
            'total_invoices': row['total_invoices'],
            'total_amount': round_money(total_amount),
            'total_paid': round_money(total_paid),
            'total_outstanding': round_money(total_amount - total_paid),
            'overdue': row['overdue'],
        }

    def get_comprehensive_stats(self, date_from=None, date_to=None) -> Dict[str, Any]:
        qs = Invoice.objects.all()
        if date_from:
            qs = qs.filter(issued_date__gte=date_from)
        if date_to:
            qs = qs.filter(issued_date__lte=date_to)

        row = qs.aggregate(
            total_invoices=Count('id'),
            total_amount=Sum('amount_total'),
            total_paid=Sum('amount_paid'),
            avg_amount=Avg('amount_total'),
        )
        total_amount = row['total_amount'] or ZERO
        total_paid = row['total_paid'] or ZERO

        total_overdue = ZERO
        for invoice in qs.filter(status=Invoice.Status.OVERDUE).only('amount_total', 'amount_paid'):
            total_overdue += invoice.amount_total - invoice.amount_paid

        payment_days = [
            days_between(issued, paid)
            for issued, paid in qs.filter(status=Invoice.Status.PAID, paid_date__isnull=False)
            .values_list('issued_date', 'paid_date')
        ]
        avg_days = round(sum(payment_days) / len(payment_days), 1) if payment_days else 0

        status_breakdown = {status: 0 for status in Invoice.Status.values}
        for entry in qs.order_by().values('status').annotate(count=Count('id')):
            status_breakdown[entry['status']] = entry['count']

        monthly = (
            qs.annotate(month=TruncMonth('issued_date'))
            .values('month')
            .annotate(revenue=Sum('amount_paid'), count=Count('id'))
            .order_by('-month')[:12]
        )
        monthly_revenue = [
            {
                'month': entry['month'].strftime('%Y-%m'),
                'revenue': round_money(entry['revenue'] or ZERO),
                'count': entry['count'],
            }
            for entry in monthly
        ]

        return {
            'total_invoices': row['total_invoices'],
            'total_revenue': round_money(total_paid),
            'total_outstanding': round_money(total_amount - total_paid),
            'total_overdue': round_money(total_overdue),
            'average_invoice_amount': round_money(row['avg_amount'] or ZERO),
            'average_days_to_payment': avg_days,
            'status_breakdown': status_breakdown,
            'monthly_revenue': monthly_revenue,
        }
