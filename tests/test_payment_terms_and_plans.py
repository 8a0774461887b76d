from datetime import date
from decimal import Decimal

import pytest

from billing.exceptions import InvalidStateError, NotFoundError, ValidationError
from billing.models import Invoice, PaymentTermsPreset
from tests.factories import InvoiceFactory, PaymentPlanTemplateFactory, PaymentTermsPresetFactory


@pytest.mark.django_db
class TestPaymentTermsPresets:
    def test_create_and_list(self, engine):
        engine.payment_terms.create_preset("Net 30", 30)
        engine.payment_terms.create_preset("Net 15", 15, late_fee_rate="2", late_fee_type="percentage")

        names = [p.name for p in engine.payment_terms.list_presets()]

        assert names == ["Net 15", "Net 30"]

    def test_single_default(self, engine):
        first = engine.payment_terms.create_preset("Net 30", 30, is_default=True)
        second = engine.payment_terms.create_preset("Due on receipt", 0, is_default=True)

        first.refresh_from_db()
        assert not first.is_default
        assert engine.payment_terms.get_default_preset() == second

    def test_validation(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.payment_terms.create_preset("", -1, late_fee_type="weekly")

        assert set(exc_info.value.fields) == {"name", "days_until_due", "late_fee_type"}

    def test_non_numeric_fee_rate(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.payment_terms.create_preset("Net 30", 30, late_fee_rate="NaN", late_fee_type="percentage")

        assert set(exc_info.value.fields) == {"late_fee_rate"}

    def test_apply_to_draft(self, engine):
        preset = PaymentTermsPresetFactory(name="Net 15", days_until_due=15)
        invoice = InvoiceFactory(issued_date=date(2024, 1, 15))

        updated = engine.payment_terms.apply_payment_terms(invoice.pk, preset.pk)

        assert updated.due_date == date(2024, 1, 30)
        assert updated.payment_terms_name == "Net 15"
        assert updated.late_fee_type == Invoice.LateFeeType.PERCENTAGE
        assert updated.late_fee_rate == Decimal("1.50")

    def test_snapshot_survives_preset_edits(self, engine):
        preset = PaymentTermsPresetFactory(name="Net 15", days_until_due=15)
        invoice = InvoiceFactory()
        engine.payment_terms.apply_payment_terms(invoice.pk, preset.pk)

        PaymentTermsPreset.objects.filter(pk=preset.pk).update(name="Net 20", days_until_due=20)

        invoice.refresh_from_db()
        assert invoice.payment_terms_name == "Net 15"
        assert invoice.due_date == date(2024, 1, 16)

    def test_flat_fee_uses_flat_amount(self, engine):
        preset = PaymentTermsPresetFactory(late_fee_type=Invoice.LateFeeType.FLAT,
                                           late_fee_flat_amount=Decimal("35.00"))
        invoice = InvoiceFactory()

        updated = engine.payment_terms.apply_payment_terms(invoice.pk, preset.pk)

        assert updated.late_fee_rate == Decimal("35.00")

    def test_only_drafts(self, engine):
        preset = PaymentTermsPresetFactory()
        invoice = InvoiceFactory(status=Invoice.Status.SENT)

        with pytest.raises(InvalidStateError):
            engine.payment_terms.apply_payment_terms(invoice.pk, preset.pk)


@pytest.mark.django_db
class TestPaymentPlans:
    def test_create_template(self, engine):
        template = engine.payment_plans.create_template("Thirds", [
            {"percentage": "34", "trigger": "upfront"},
            {"percentage": "33", "trigger": "midpoint", "label": "Midpoint review"},
            {"percentage": "33", "trigger": "completion"},
        ])

        payments = template.get_payments()
        assert [p.trigger for p in payments] == ["upfront", "midpoint", "completion"]
        assert payments[1].label == "Midpoint review"

    def test_template_needs_payments(self, engine):
        with pytest.raises(ValidationError):
            engine.payment_plans.create_template("Empty", [])

    def test_template_rejects_unknown_trigger(self, engine):
        with pytest.raises(ValidationError):
            engine.payment_plans.create_template("Odd", [{"percentage": "100", "trigger": "someday"}])

    def test_template_rejects_non_numeric_percentage(self, engine):
        with pytest.raises(ValidationError):
            engine.payment_plans.create_template("Odd", [{"percentage": "NaN", "trigger": "upfront"}])

    def test_single_default_template(self, engine):
        first = engine.payment_plans.create_template("Half up front", [{"percentage": "100", "trigger": "upfront"}],
                                                     is_default=True)
        second = engine.payment_plans.create_template("All on completion",
                                                      [{"percentage": "100", "trigger": "completion"}],
                                                      is_default=True)

        first.refresh_from_db()
        assert not first.is_default
        assert engine.payment_plans.list_templates()[0] == second

    def test_generate_rejects_non_finite_total(self, engine):
        template = PaymentPlanTemplateFactory()

        with pytest.raises(ValidationError):
            engine.payment_plans.generate_invoices_from_template(3, 4, template.pk, "Infinity")

    def test_generate_invoices(self, engine):
        template = PaymentPlanTemplateFactory()

        invoices = engine.payment_plans.generate_invoices_from_template(3, 4, template.pk, "1000")

        assert len(invoices) == 2
        upfront, completion = invoices
        assert upfront.amount_total == Decimal("500.00")
        assert upfront.due_date == date(2024, 1, 22)
        assert completion.due_date == date(2024, 4, 14)
        assert upfront.get_line_items()[0].description == "Payment (50%)"
        assert upfront.notes == "Generated from payment plan: Half up front"
        assert upfront.payment_plan_id == template.pk
        assert upfront.source_type == Invoice.SourceType.PAYMENT_PLAN

    def test_delete_template(self, engine):
        template = PaymentPlanTemplateFactory()

        engine.payment_plans.delete_template(template.pk)

        with pytest.raises(NotFoundError):
            engine.payment_plans.get_template(template.pk)
