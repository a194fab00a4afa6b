from django.db import models
from django.contrib.auth.models import User
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
from decimal import Decimal

from invoicing.utils import quantize_money


TAX_APPLIES_TO_CHOICES = [
    ('labor', 'Labor only'),
    ('parts', 'Parts only'),
    ('both', 'Labor and parts'),
]

INVOICE_PAYMENT_METHOD_CHOICES = [
    ('cash', 'Cash'),
    ('check', 'Check'),
    ('efs_check', 'EFS Check'),
    ('cc_physical', 'Credit Card (in person)'),
    ('stripe', 'Credit Card (online)'),
    ('other', 'Other'),
]

# Payment methods that carry the credit card surcharge
CARD_PAYMENT_METHODS = frozenset({'cc_physical', 'stripe'})


class Job(models.Model):
    """Repair job an invoice is raised against."""
    SERVICE_TYPE_CHOICES = [
        ('shop', 'Shop'),
        ('road', 'Road Service'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
    ]

    customer_name = models.CharField(max_length=255)
    company = models.CharField(max_length=255, blank=True, null=True)
    customer_email = models.EmailField(blank=True, null=True)
    billing_address = models.TextField(blank=True, null=True)
    truck_vin = models.CharField(max_length=32, blank=True, null=True)
    service_type = models.CharField(max_length=16, choices=SERVICE_TYPE_CHOICES, default='shop')
    description = models.TextField(blank=True, null=True, help_text="Customer complaint / requested work")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_job_status'),
            models.Index(fields=['truck_vin'], name='idx_job_vin'),
        ]

    def __str__(self) -> str:
        vin = f" ({self.truck_vin[-6:]})" if self.truck_vin else ""
        return f"{self.customer_name}{vin}"


class Part(models.Model):
    """Parts catalog entry; `cost` is the shop's unit cost before markup."""
    part_number = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    cost = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['part_number']
        indexes = [
            models.Index(fields=['part_number'], name='idx_part_number'),
            models.Index(fields=['is_active'], name='idx_part_active'),
        ]

    def __str__(self) -> str:
        return f"{self.part_number} - {self.name}"


class InvoiceSettings(models.Model):
    """Shop-wide invoicing configuration. A single row (pk=1) is used."""
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'), help_text="Tax percentage")
    tax_applies_to = models.CharField(max_length=8, choices=TAX_APPLIES_TO_CHOICES, default='both')
    credit_card_fee_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    shop_labor_rate = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    road_labor_rate = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    default_parts_markup = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    shop_supply_fee_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    disposal_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Invoice Settings'
        verbose_name_plural = 'Invoice Settings'

    def __str__(self) -> str:
        return f"Tax {self.tax_rate}% on {self.tax_applies_to}, card fee {self.credit_card_fee_percent}%"

    def save(self, *args, **kwargs):
        """Always write the singleton row."""
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        """Get the settings row, creating it with defaults when missing."""
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj


class Invoice(models.Model):
    """Invoice raised against a job. Totals are computed and stored for history."""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('sent', 'Sent'),
        ('paid', 'Paid'),
    ]
    PAYMENT_METHOD_CHOICES = INVOICE_PAYMENT_METHOD_CHOICES

    invoice_number = models.CharField(max_length=32, unique=True, editable=False, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='pending')

    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name='invoices')

    invoice_date = models.DateField(default=timezone.localdate)
    work_performed = models.TextField(help_text="Description of the work actually performed")
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES, default='cash')

    # Flat adjustments, e.g. [{"description": "Disposal", "amount": "25.00"}]
    misc_fees = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)

    # Amounts
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0, help_text="Tax percentage at time of save")
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    cc_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    grand_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-invoice_date', '-invoice_number']
        indexes = [
            models.Index(fields=['job'], name='idx_invoice_job'),
            models.Index(fields=['status'], name='idx_invoice_status'),
        ]

    def __str__(self) -> str:
        return f"Invoice {self.invoice_number} - {self.job.customer_name}"

    def generate_invoice_number(self):
        """Generate sequential invoice number"""
        if self.invoice_number:
            return self.invoice_number
        year = timezone.now().year
        prefix = f"INV-{year}-"
        existing = Invoice.objects.filter(invoice_number__startswith=prefix).values_list('invoice_number', flat=True)
        max_seq = 0
        for inv_no in existing:
            try:
                seq = int(inv_no.split(prefix)[1])
            except (IndexError, ValueError):
                continue
            max_seq = max(max_seq, seq)
        next_seq = max_seq + 1
        candidate = f"{prefix}{next_seq:05d}"
        while Invoice.objects.filter(invoice_number=candidate).exists():
            next_seq += 1
            candidate = f"{prefix}{next_seq:05d}"
        self.invoice_number = candidate
        return self.invoice_number


class InvoiceLabor(models.Model):
    """Labor line: hours x rate"""
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='labor_entries')
    description = models.CharField(max_length=255)
    hours = models.DecimalField(max_digits=8, decimal_places=2)
    rate = models.DecimalField(max_digits=12, decimal_places=2)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['invoice', 'position', 'id']

    @property
    def amount(self) -> Decimal:
        return quantize_money(self.hours * self.rate)

    def __str__(self) -> str:
        return f"{self.description} ({self.hours}h @ {self.rate})"


class InvoicePart(models.Model):
    """Part line priced from the catalog cost plus markup, or manually overridden."""
    PRICING_CHOICES = [
        ('auto', 'Auto-priced'),
        ('override', 'Manually overridden'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='part_entries')
    part = models.ForeignKey(Part, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoice_lines')
    quantity = models.PositiveIntegerField(default=1)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    markup_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    final_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    pricing = models.CharField(max_length=8, choices=PRICING_CHOICES, default='auto')
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['invoice', 'position', 'id']

    def __str__(self) -> str:
        name = self.part.name if self.part else 'Part'
        return f"{name} x {self.quantity}"


class Payment(models.Model):
    """Payment recorded against an invoice"""
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('check', 'Check'),
        ('efs_check', 'EFS Check'),
        ('cc_physical', 'Credit Card (in person)'),
        ('other', 'Other'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='payments')
    method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    reference = models.CharField(max_length=128, blank=True, null=True, help_text="Check number, transaction ID, etc.")
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.get_method_display()} - {self.amount}"
