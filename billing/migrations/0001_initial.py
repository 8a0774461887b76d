from decimal import Decimal
import django.core.serializers.json
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentPlanTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True)),
                ('payments', models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'payment_plan_templates',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='PaymentTermsPreset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('days_until_due', models.PositiveIntegerField(default=30)),
                ('description', models.TextField(blank=True)),
                ('late_fee_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('late_fee_type', models.CharField(choices=[('none', 'None'), ('flat', 'Flat Amount'), ('percentage', 'Percentage'), ('daily_percentage', 'Daily Percentage')], default='none', max_length=20)),
                ('late_fee_flat_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('grace_period_days', models.PositiveIntegerField(default=0)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'payment_terms_presets',
                'ordering': ['days_until_due', 'name'],
            },
        ),
        migrations.CreateModel(
            name='InvoiceNumberSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('prefix', models.CharField(max_length=20, unique=True)),
                ('last_value', models.PositiveIntegerField(default=0)),
            ],
            options={
                'db_table': 'invoice_number_sequences',
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(max_length=50, unique=True)),
                ('invoice_prefix', models.CharField(default='INV', max_length=20)),
                ('invoice_sequence', models.PositiveIntegerField(default=0)),
                ('project_id', models.PositiveIntegerField(db_index=True)),
                ('client_id', models.PositiveIntegerField(db_index=True)),
                ('milestone_id', models.PositiveIntegerField(blank=True, db_index=True, null=True)),
                ('amount_total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('amount_paid', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('sent', 'Sent'), ('viewed', 'Viewed'), ('partial', 'Partially Paid'), ('paid', 'Paid'), ('overdue', 'Overdue'), ('cancelled', 'Cancelled')], db_index=True, default='draft', max_length=20)),
                ('issued_date', models.DateField()),
                ('due_date', models.DateField(blank=True, db_index=True, null=True)),
                ('paid_date', models.DateField(blank=True, null=True)),
                ('payment_method', models.CharField(blank=True, max_length=50)),
                ('payment_reference', models.CharField(blank=True, max_length=255)),
                ('line_items', models.JSONField(blank=True, default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('notes', models.TextField(blank=True)),
                ('terms', models.TextField(blank=True)),
                ('internal_notes', models.TextField(blank=True)),
                ('business_name', models.CharField(blank=True, max_length=255)),
                ('business_contact', models.CharField(blank=True, max_length=255)),
                ('business_email', models.EmailField(blank=True, max_length=254)),
                ('business_website', models.CharField(blank=True, max_length=255)),
                ('venmo_handle', models.CharField(blank=True, max_length=100)),
                ('paypal_email', models.EmailField(blank=True, max_length=254)),
                ('bill_to_name', models.CharField(blank=True, max_length=255)),
                ('bill_to_email', models.EmailField(blank=True, max_length=254)),
                ('services_title', models.CharField(blank=True, max_length=255)),
                ('services_description', models.TextField(blank=True)),
                ('deliverables', models.JSONField(blank=True, default=list)),
                ('features', models.TextField(blank=True)),
                ('invoice_type', models.CharField(choices=[('standard', 'Standard'), ('deposit', 'Deposit')], default='standard', max_length=20)),
                ('deposit_for_project_id', models.PositiveIntegerField(blank=True, db_index=True, null=True)),
                ('deposit_percentage', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('tax_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=5)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('discount_type', models.CharField(blank=True, choices=[('percentage', 'Percentage'), ('fixed', 'Fixed Amount')], max_length=20)),
                ('discount_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('late_fee_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('late_fee_type', models.CharField(choices=[('none', 'None'), ('flat', 'Flat Amount'), ('percentage', 'Percentage'), ('daily_percentage', 'Daily Percentage')], default='none', max_length=20)),
                ('late_fee_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15)),
                ('late_fee_applied_at', models.DateTimeField(blank=True, null=True)),
                ('payment_terms_name', models.CharField(blank=True, max_length=100)),
                ('source_type', models.CharField(choices=[('manual', 'Manual'), ('duplicate', 'Duplicate'), ('deposit', 'Deposit'), ('recurring', 'Recurring Rule'), ('scheduled', 'Scheduled Invoice'), ('payment_plan', 'Payment Plan'), ('milestone', 'Milestone')], default='manual', max_length=20)),
                ('source_id', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('payment_plan', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='billing.paymentplantemplate')),
                ('payment_terms', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices', to='billing.paymenttermspreset')),
            ],
            options={
                'db_table': 'invoices',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['status', 'due_date'], name='invoice_status_due_idx'),
                    models.Index(fields=['client_id', 'status'], name='invoice_client_status_idx'),
                    models.Index(fields=['deposit_for_project_id', 'invoice_type', 'status'], name='invoice_deposit_lookup_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RecurringInvoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('project_id', models.PositiveIntegerField(db_index=True)),
                ('client_id', models.PositiveIntegerField(db_index=True)),
                ('frequency', models.CharField(choices=[('weekly', 'Weekly'), ('monthly', 'Monthly'), ('quarterly', 'Quarterly')], default='monthly', max_length=20)),
                ('day_of_month', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(31)])),
                ('day_of_week', models.PositiveSmallIntegerField(blank=True, help_text='0 = Sunday', null=True, validators=[django.core.validators.MaxValueValidator(6)])),
                ('line_items', models.JSONField(blank=True, default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('notes', models.TextField(blank=True)),
                ('terms', models.TextField(blank=True)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField(blank=True, null=True)),
                ('next_generation_date', models.DateField(db_index=True)),
                ('last_generated_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'recurring_invoices',
                'ordering': ['next_generation_date', 'id'],
                'indexes': [
                    models.Index(fields=['is_active', 'next_generation_date'], name='recurring_due_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoicePayment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=15)),
                ('payment_method', models.CharField(max_length=50)),
                ('payment_reference', models.CharField(blank=True, max_length=255)),
                ('payment_date', models.DateField()),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='billing.invoice')),
            ],
            options={
                'db_table': 'invoice_payments',
                'ordering': ['-payment_date', '-id'],
            },
        ),
        migrations.CreateModel(
            name='InvoiceCredit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=15)),
                ('applied_at', models.DateTimeField()),
                ('applied_by', models.CharField(blank=True, max_length=255)),
                ('deposit_invoice', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='credits_given', to='billing.invoice')),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='credits', to='billing.invoice')),
            ],
            options={
                'db_table': 'invoice_credits',
                'ordering': ['applied_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='ScheduledInvoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('project_id', models.PositiveIntegerField(db_index=True)),
                ('client_id', models.PositiveIntegerField(db_index=True)),
                ('scheduled_date', models.DateField(db_index=True)),
                ('trigger_type', models.CharField(choices=[('date', 'Date'), ('milestone_complete', 'Milestone Complete')], default='date', max_length=30)),
                ('trigger_milestone_id', models.PositiveIntegerField(blank=True, db_index=True, null=True)),
                ('line_items', models.JSONField(blank=True, default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('notes', models.TextField(blank=True)),
                ('terms', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('generated', 'Generated'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('generated_invoice', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='scheduled_sources', to='billing.invoice')),
            ],
            options={
                'db_table': 'scheduled_invoices',
                'ordering': ['scheduled_date', 'id'],
            },
        ),
        migrations.CreateModel(
            name='InvoiceReminder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reminder_type', models.CharField(choices=[('upcoming', 'Upcoming'), ('due', 'Due Today'), ('overdue_3', '3 Days Overdue'), ('overdue_7', '7 Days Overdue'), ('overdue_14', '14 Days Overdue'), ('overdue_30', '30 Days Overdue')], max_length=20)),
                ('scheduled_date', models.DateField(db_index=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('skipped', 'Skipped'), ('failed', 'Failed')], db_index=True, default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reminders', to='billing.invoice')),
            ],
            options={
                'db_table': 'invoice_reminders',
                'ordering': ['scheduled_date', 'id'],
                'unique_together': {('invoice', 'reminder_type')},
            },
        ),
    ]
