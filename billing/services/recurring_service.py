import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from django.db import transaction

from ..exceptions import InvalidStateError, ValidationError
from ..models import Invoice, RecurringInvoice, ScheduledInvoice
from ..types import coerce_line_items, dump_line_items
from ..utils import add_months, next_weekday_on_or_after
from .base import BaseService

logger = logging.getLogger(__name__)

Frequency = RecurringInvoice.Frequency


def next_generation_date(from_date: date, frequency: str, day_of_month: Optional[int] = None,
                         day_of_week: Optional[int] = None) -> date:
    """
    Next occurrence of a recurring rule, always strictly after from_date.

    Weekly rules move forward seven days and then onto day_of_week (0 = Sunday)
    if one is set. Monthly and quarterly rules move one or three calendar
    months and pin to day_of_month, clamped to the length of the month.
    Unknown frequencies behave as monthly.
    """
    if frequency == Frequency.WEEKLY:
        next_date = from_date + timedelta(days=7)
        if day_of_week is not None:
            next_date = next_weekday_on_or_after(next_date, day_of_week)
        return next_date
    if frequency == Frequency.QUARTERLY:
        return add_months(from_date, 3, day_of_month)
    return add_months(from_date, 1, day_of_month)


class RecurringService(BaseService):
    RULE_FIELDS = ('frequency', 'day_of_month', 'day_of_week', 'notes', 'terms', 'end_date', 'line_items')

    next_generation_date = staticmethod(next_generation_date)

    def _validate_rule(self, data: Dict[str, Any], partial: bool = False) -> Dict[str, str]:
        errors = {}
        if not partial:
            for key in ('project_id', 'client_id', 'frequency', 'start_date'):
                if data.get(key) is None:
                    errors[key] = 'This field is required'
        if 'frequency' in data and data['frequency'] not in Frequency.values:
            errors['frequency'] = f"Must be one of {', '.join(Frequency.values)}"
        if data.get('day_of_month') is not None and not 1 <= int(data['day_of_month']) <= 31:
            errors['day_of_month'] = 'Must be between 1 and 31'
        if data.get('day_of_week') is not None and not 0 <= int(data['day_of_week']) <= 6:
            errors['day_of_week'] = 'Must be between 0 (Sunday) and 6 (Saturday)'
        if 'line_items' in data or not partial:
            if not coerce_line_items(data.get('line_items')):
                errors['line_items'] = 'At least one line item is required'
        return errors

    # ------------------------------------------------------------------
    # Recurring rules
    # ------------------------------------------------------------------

    def create_recurring(self, data: Dict[str, Any]) -> RecurringInvoice:
        errors = self._validate_rule(data)
        if errors:
            raise ValidationError("Invalid recurring invoice", fields=errors)

        rule = RecurringInvoice(
            project_id=data['project_id'],
            client_id=data['client_id'],
            frequency=data['frequency'],
            day_of_month=data.get('day_of_month'),
            day_of_week=data.get('day_of_week'),
            notes=data.get('notes') or '',
            terms=data.get('terms') or '',
            start_date=data['start_date'],
            end_date=data.get('end_date'),
            is_active=True,
        )
        rule.set_line_items(data['line_items'])
        rule.next_generation_date = next_generation_date(
            rule.start_date, rule.frequency, rule.day_of_month, rule.day_of_week
        )
        rule.save()
        logger.info(f"Recurring invoice {rule.pk} created ({rule.frequency}), first run {rule.next_generation_date}")
        return rule

    def get_recurring(self, recurring_id) -> RecurringInvoice:
        return self.repository.get_recurring(recurring_id)

    def list_recurring(self, project_id=None) -> List[RecurringInvoice]:
        qs = RecurringInvoice.objects.all()
        if project_id is not None:
            qs = qs.filter(project_id=project_id)
        return list(qs)

    @transaction.atomic
    def update_recurring(self, recurring_id, patch: Dict[str, Any]) -> RecurringInvoice:
        rule = self.repository.get_recurring(recurring_id, lock=True)
        unknown = set(patch) - set(self.RULE_FIELDS)
        errors = {name: 'Field cannot be updated' for name in unknown}
        errors.update(self._validate_rule(patch, partial=True))
        if errors:
            raise ValidationError("Invalid recurring invoice", fields=errors)

        for name in self.RULE_FIELDS:
            if name not in patch:
                continue
            if name == 'line_items':
                rule.set_line_items(patch[name])
            elif name in ('notes', 'terms'):
                setattr(rule, name, patch[name] or '')
            else:
                setattr(rule, name, patch[name])
        rule.save()
        return rule

    @transaction.atomic
    def pause(self, recurring_id) -> RecurringInvoice:
        rule = self.repository.get_recurring(recurring_id, lock=True)
        rule.is_active = False
        rule.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Recurring invoice {rule.pk} paused")
        return rule

    @transaction.atomic
    def resume(self, recurring_id) -> RecurringInvoice:
        rule = self.repository.get_recurring(recurring_id, lock=True)
        rule.is_active = True
        rule.next_generation_date = next_generation_date(
            self.today(), rule.frequency, rule.day_of_month, rule.day_of_week
        )
        rule.save(update_fields=['is_active', 'next_generation_date', 'updated_at'])
        logger.info(f"Recurring invoice {rule.pk} resumed, next run {rule.next_generation_date}")
        return rule

    def delete_recurring(self, recurring_id) -> None:
        rule = self.repository.get_recurring(recurring_id)
        rule.delete()
        logger.info(f"Recurring invoice {recurring_id} deleted")

    def _due_rules(self, today: date):
        qs = RecurringInvoice.objects.filter(is_active=True, next_generation_date__lte=today)
        return qs.exclude(end_date__lt=today)

    @transaction.atomic
    def _generate_from_rule(self, recurring_id, today: date) -> Optional[Invoice]:
        rule = self.repository.get_recurring(recurring_id, lock=True)
        # re-check under the lock; a concurrent sweep may have advanced it
        if not rule.is_active or rule.next_generation_date > today:
            return None
        if rule.end_date and rule.end_date < today:
            return None

        invoice = self.engine.invoices.create({
            'project_id': rule.project_id,
            'client_id': rule.client_id,
            'line_items': rule.get_line_items(),
            'notes': rule.notes,
            'terms': rule.terms,
            'source_type': Invoice.SourceType.RECURRING,
            'source_id': rule.pk,
        })
        rule.last_generated_at = self.now()
        rule.next_generation_date = next_generation_date(
            rule.next_generation_date, rule.frequency, rule.day_of_month, rule.day_of_week
        )
        rule.save(update_fields=['last_generated_at', 'next_generation_date', 'updated_at'])
        return invoice

    def process_recurring_invoices(self) -> int:
        today = self.today()
        rule_ids = list(self._due_rules(today).values_list('pk', flat=True))
        generated = 0
        failed = 0

        for rule_id in rule_ids:
            try:
                invoice = self._generate_from_rule(rule_id, today)
                if invoice is not None:
                    generated += 1
                    logger.info(f"Generated invoice {invoice.invoice_number} from recurring invoice {rule_id}")
            except Exception:
                failed += 1
                logger.exception(f"Failed to generate invoice for recurring invoice {rule_id}")

        logger.info(f"Recurring sweep complete: {generated} generated, {failed} failed")
        return generated

    # ------------------------------------------------------------------
    # Scheduled one-shots
    # ------------------------------------------------------------------

    def schedule_invoice(self, data: Dict[str, Any]) -> ScheduledInvoice:
        errors = {}
        for key in ('project_id', 'client_id', 'scheduled_date'):
            if data.get(key) is None:
                errors[key] = 'This field is required'
        trigger_type = data.get('trigger_type') or ScheduledInvoice.TriggerType.DATE
        if trigger_type not in ScheduledInvoice.TriggerType.values:
            errors['trigger_type'] = f"Must be one of {', '.join(ScheduledInvoice.TriggerType.values)}"
        elif trigger_type == ScheduledInvoice.TriggerType.MILESTONE_COMPLETE and not data.get('trigger_milestone_id'):
            errors['trigger_milestone_id'] = 'Required for milestone triggers'
        if not coerce_line_items(data.get('line_items')):
            errors['line_items'] = 'At least one line item is required'
        if errors:
            raise ValidationError("Invalid scheduled invoice", fields=errors)

        scheduled = ScheduledInvoice(
            project_id=data['project_id'],
            client_id=data['client_id'],
            scheduled_date=data['scheduled_date'],
            trigger_type=trigger_type,
            trigger_milestone_id=data.get('trigger_milestone_id'),
            line_items=dump_line_items(coerce_line_items(data['line_items'])),
            notes=data.get('notes') or '',
            terms=data.get('terms') or '',
        )
        scheduled.save()
        logger.info(f"Invoice scheduled for {scheduled.scheduled_date} ({scheduled.trigger_type})")
        return scheduled

    def get_scheduled(self, scheduled_id) -> ScheduledInvoice:
        return self.repository.get_scheduled(scheduled_id)

    def list_scheduled(self, project_id=None) -> List[ScheduledInvoice]:
        qs = ScheduledInvoice.objects.filter(status=ScheduledInvoice.Status.PENDING)
        if project_id is not None:
            qs = qs.filter(project_id=project_id)
        return list(qs)

    @transaction.atomic
    def cancel_scheduled(self, scheduled_id) -> ScheduledInvoice:
        scheduled = self.repository.get_scheduled(scheduled_id, lock=True)
        if scheduled.status != ScheduledInvoice.Status.PENDING:
            raise InvalidStateError(
                f"Scheduled invoice {scheduled.pk} is already {scheduled.status}",
                scheduled_id=scheduled.pk, status=scheduled.status,
            )
        scheduled.status = ScheduledInvoice.Status.CANCELLED
        scheduled.save(update_fields=['status'])
        return scheduled

    @transaction.atomic
    def _generate_from_scheduled(self, scheduled_id) -> Optional[Invoice]:
        scheduled = self.repository.get_scheduled(scheduled_id, lock=True)
        if scheduled.status != ScheduledInvoice.Status.PENDING:
            return None

        invoice = self.engine.invoices.create({
            'project_id': scheduled.project_id,
            'client_id': scheduled.client_id,
            'line_items': scheduled.get_line_items(),
            'notes': scheduled.notes,
            'terms': scheduled.terms,
            'milestone_id': scheduled.trigger_milestone_id,
            'source_type': Invoice.SourceType.SCHEDULED,
            'source_id': scheduled.pk,
        })
        scheduled.status = ScheduledInvoice.Status.GENERATED
        scheduled.generated_invoice = invoice
        scheduled.save(update_fields=['status', 'generated_invoice'])
        return invoice

    def _run_scheduled(self, scheduled_ids, label: str) -> int:
        generated = 0
        failed = 0
        for scheduled_id in scheduled_ids:
            try:
                invoice = self._generate_from_scheduled(scheduled_id)
                if invoice is not None:
                    generated += 1
                    logger.info(f"Generated invoice {invoice.invoice_number} from scheduled invoice {scheduled_id}")
            except Exception:
                failed += 1
                logger.exception(f"Failed to generate scheduled invoice {scheduled_id}")

        logger.info(f"{label} complete: {generated} generated, {failed} failed")
        return generated

    def process_scheduled_invoices(self) -> int:
        scheduled_ids = list(
            ScheduledInvoice.objects.filter(
                status=ScheduledInvoice.Status.PENDING,
                trigger_type=ScheduledInvoice.TriggerType.DATE,
                scheduled_date__lte=self.today(),
            ).values_list('pk', flat=True)
        )
        return self._run_scheduled(scheduled_ids, "Scheduled invoice sweep")

    def fire_milestone(self, milestone_id) -> int:
        """Generate every pending invoice waiting on a completed milestone."""
        scheduled_ids = list(
            ScheduledInvoice.objects.filter(
                status=ScheduledInvoice.Status.PENDING,
                trigger_type=ScheduledInvoice.TriggerType.MILESTONE_COMPLETE,
                trigger_milestone_id=milestone_id,
            ).values_list('pk', flat=True)
        )
        return self._run_scheduled(scheduled_ids, f"Milestone {milestone_id} trigger")
