from django.contrib import admin

from .forms import InvoiceSettingsForm, PartForm
from .models import Job, Part, InvoiceSettings, Invoice, InvoiceLabor, InvoicePart, Payment


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("customer_name", "company", "truck_vin", "service_type", "status", "created_at")
    search_fields = ("customer_name", "company", "truck_vin", "customer_email")
    list_filter = ("service_type", "status")


@admin.register(Part)
class PartAdmin(admin.ModelAdmin):
    form = PartForm
    list_display = ("part_number", "name", "cost", "is_active")
    search_fields = ("part_number", "name")
    list_filter = ("is_active",)


@admin.register(InvoiceSettings)
class InvoiceSettingsAdmin(admin.ModelAdmin):
    form = InvoiceSettingsForm
    list_display = ("tax_rate", "tax_applies_to", "credit_card_fee_percent", "shop_labor_rate", "road_labor_rate", "updated_at")

    def has_add_permission(self, request):
        # Single settings row
        return not InvoiceSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


class InvoiceLaborInline(admin.TabularInline):
    model = InvoiceLabor
    extra = 0
    fields = ("position", "description", "hours", "rate")


class InvoicePartInline(admin.TabularInline):
    model = InvoicePart
    extra = 0
    fields = ("position", "part", "quantity", "unit_cost", "markup_percent", "final_price", "pricing")
    autocomplete_fields = ("part",)


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("method", "amount", "reference", "created_at")
    readonly_fields = ("created_at",)
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "job", "status", "payment_method", "grand_total", "invoice_date", "created_by")
    search_fields = ("invoice_number", "job__customer_name", "job__truck_vin")
    list_filter = ("status", "payment_method", "invoice_date")
    readonly_fields = ("invoice_number", "subtotal", "tax_rate", "tax_amount", "cc_fee", "grand_total", "created_at", "updated_at")
    inlines = [InvoiceLaborInline, InvoicePartInline, PaymentInline]

    def save_model(self, request, obj, form, change):
        if not obj.invoice_number:
            obj.generate_invoice_number()
        if not change and obj.created_by is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

    def has_delete_permission(self, request, obj=None):
        # Invoices are kept for history
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("invoice", "method", "amount", "reference", "created_at")
    search_fields = ("invoice__invoice_number", "reference")
    list_filter = ("method",)
