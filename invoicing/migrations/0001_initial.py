import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Job',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('customer_name', models.CharField(max_length=255)),
                ('company', models.CharField(blank=True, max_length=255, null=True)),
                ('customer_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('billing_address', models.TextField(blank=True, null=True)),
                ('truck_vin', models.CharField(blank=True, max_length=32, null=True)),
                ('service_type', models.CharField(choices=[('shop', 'Shop'), ('road', 'Road Service')], default='shop', max_length=16)),
                ('description', models.TextField(blank=True, help_text='Customer complaint / requested work', null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed')], default='pending', max_length=16)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_job_status'),
                    models.Index(fields=['truck_vin'], name='idx_job_vin'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Part',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('part_number', models.CharField(max_length=64, unique=True)),
                ('name', models.CharField(max_length=255)),
                ('cost', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['part_number'],
                'indexes': [
                    models.Index(fields=['part_number'], name='idx_part_number'),
                    models.Index(fields=['is_active'], name='idx_part_active'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoiceSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tax_rate', models.DecimalField(decimal_places=2, default=Decimal('0'), help_text='Tax percentage', max_digits=5)),
                ('tax_applies_to', models.CharField(choices=[('labor', 'Labor only'), ('parts', 'Parts only'), ('both', 'Labor and parts')], default='both', max_length=8)),
                ('credit_card_fee_percent', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('shop_labor_rate', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('road_labor_rate', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('default_parts_markup', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('shop_supply_fee_percent', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('disposal_fee', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=12)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Invoice Settings',
                'verbose_name_plural': 'Invoice Settings',
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('invoice_number', models.CharField(db_index=True, editable=False, max_length=32, unique=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('paid', 'Paid')], default='pending', max_length=16)),
                ('invoice_date', models.DateField(default=django.utils.timezone.localdate)),
                ('work_performed', models.TextField(help_text='Description of the work actually performed')),
                ('payment_method', models.CharField(choices=[('cash', 'Cash'), ('check', 'Check'), ('efs_check', 'EFS Check'), ('cc_physical', 'Credit Card (in person)'), ('stripe', 'Credit Card (online)'), ('other', 'Other')], default='cash', max_length=16)),
                ('misc_fees', models.JSONField(blank=True, default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('subtotal', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('tax_rate', models.DecimalField(decimal_places=2, default=0, help_text='Tax percentage at time of save', max_digits=5)),
                ('tax_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('cc_fee', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('grand_total', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoices_created', to=settings.AUTH_USER_MODEL)),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='invoicing.job')),
            ],
            options={
                'ordering': ['-invoice_date', '-invoice_number'],
                'indexes': [
                    models.Index(fields=['job'], name='idx_invoice_job'),
                    models.Index(fields=['status'], name='idx_invoice_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoiceLabor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.CharField(max_length=255)),
                ('hours', models.DecimalField(decimal_places=2, max_digits=8)),
                ('rate', models.DecimalField(decimal_places=2, max_digits=12)),
                ('position', models.PositiveIntegerField(default=0)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='labor_entries', to='invoicing.invoice')),
            ],
            options={
                'ordering': ['invoice', 'position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='InvoicePart',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('markup_percent', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('final_price', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('pricing', models.CharField(choices=[('auto', 'Auto-priced'), ('override', 'Manually overridden')], default='auto', max_length=8)),
                ('position', models.PositiveIntegerField(default=0)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='part_entries', to='invoicing.invoice')),
                ('part', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invoice_lines', to='invoicing.part')),
            ],
            options={
                'ordering': ['invoice', 'position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('method', models.CharField(choices=[('cash', 'Cash'), ('check', 'Check'), ('efs_check', 'EFS Check'), ('cc_physical', 'Credit Card (in person)'), ('other', 'Other')], max_length=16)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('reference', models.CharField(blank=True, help_text='Check number, transaction ID, etc.', max_length=128, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('invoice', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='invoicing.invoice')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
