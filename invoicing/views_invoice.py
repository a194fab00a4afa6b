"""
Views for invoice editing, payment, sending and printing.
"""

import json
import logging

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.db.models import Q
from django.forms.models import model_to_dict
from django.http import JsonResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from .exceptions import PersistenceError, TransportError
from .forms import InvoiceSettingsForm, PaymentForm
from .models import Invoice, InvoiceSettings, Part
from .services import InvoiceDraft, InvoiceService, compute_totals

logger = logging.getLogger(__name__)


def _load_payload(request):
    """JSON body when sent as application/json, form fields otherwise."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except (ValueError, UnicodeDecodeError):
            return None
        return data if isinstance(data, dict) else None
    return request.POST.dict()


def _validation_response(e: ValidationError):
    errors = e.message_dict if hasattr(e, 'error_dict') else {'__all__': e.messages}
    return JsonResponse({'success': False, 'message': 'Invoice is not valid', 'errors': errors}, status=400)


def _invoice_summary(invoice: Invoice) -> dict:
    job = invoice.job
    return {
        'id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'status': invoice.status,
        'invoice_date': invoice.invoice_date.isoformat() if invoice.invoice_date else None,
        'job': {
            'id': job.id,
            'customer_name': job.customer_name,
            'truck_vin': job.truck_vin,
        } if job else None,
        'payment_method': invoice.payment_method,
        'grand_total': float(invoice.grand_total or 0),
        'created_at': invoice.created_at.isoformat() if invoice.created_at else None,
    }


def _invoice_detail(invoice: Invoice, settings: InvoiceSettings) -> dict:
    data = _invoice_summary(invoice)
    labor = list(invoice.labor_entries.all())
    parts = list(invoice.part_entries.select_related('part'))
    data.update({
        'work_performed': invoice.work_performed,
        'labor_entries': [
            {
                'description': row.description,
                'hours': float(row.hours),
                'rate': float(row.rate),
                'amount': float(row.amount),
            }
            for row in labor
        ],
        'part_entries': [
            {
                'part_id': row.part_id,
                'part_number': row.part.part_number if row.part else None,
                'name': row.part.name if row.part else None,
                'quantity': row.quantity,
                'unit_cost': float(row.unit_cost) if row.unit_cost is not None else None,
                'markup_percent': float(row.markup_percent),
                'final_price': float(row.final_price),
                'pricing': row.pricing,
            }
            for row in parts
        ],
        'misc_fees': invoice.misc_fees or [],
        'stored_totals': {
            'subtotal': float(invoice.subtotal),
            'tax': float(invoice.tax_amount),
            'cc_fee': float(invoice.cc_fee),
            'grand_total': float(invoice.grand_total),
        },
        # Recomputed with the current shop settings, for editing
        'totals': compute_totals(labor, parts, invoice.misc_fees, invoice.payment_method, settings).as_dict(),
    })
    return data


@login_required
@require_http_methods(["GET"])
def api_invoice_list(request):
    """
    List invoices, newest first.

    Query parameters:
    - status: pending, sent or paid (optional)
    - limit: max rows (default 50)
    """
    qs = Invoice.objects.select_related('job')
    status = (request.GET.get('status') or '').strip()
    if status:
        qs = qs.filter(status=status)
    try:
        limit = max(1, min(int(request.GET.get('limit', 50)), 500))
    except (TypeError, ValueError):
        limit = 50
    invoices = [_invoice_summary(inv) for inv in qs[:limit]]
    return JsonResponse({'success': True, 'invoices': invoices, 'count': len(invoices)})


@login_required
@require_http_methods(["GET"])
def api_pending_payments(request):
    """Unpaid invoices (pending or sent), oldest first"""
    qs = Invoice.objects.select_related('job').filter(status__in=['pending', 'sent']).order_by('created_at')
    invoices = [_invoice_summary(inv) for inv in qs]
    return JsonResponse({'success': True, 'invoices': invoices, 'count': len(invoices)})


@login_required
@require_http_methods(["GET"])
def api_invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related('job'), pk=pk)
    return JsonResponse({'success': True, 'invoice': _invoice_detail(invoice, InvoiceSettings.load())})


@login_required
@require_http_methods(["POST"])
def api_invoice_totals(request):
    """
    Recompute totals for an invoice being edited, without saving.
    Part lines without a final price come back auto-priced.
    """
    data = _load_payload(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON body'}, status=400)
    draft = InvoiceDraft.from_payload(data)
    return JsonResponse({'success': True, 'draft': draft.as_dict(), 'totals': draft.totals.as_dict()})


@login_required
@require_http_methods(["POST"])
def api_invoice_save(request):
    """
    Create or update an invoice from the edit form.

    Body: the invoice draft as JSON (see InvoiceDraft.from_payload). An `id`
    updates that invoice; without one a new pending invoice is created.
    """
    data = _load_payload(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON body'}, status=400)

    draft = InvoiceDraft.from_payload(data)
    try:
        invoice = InvoiceService.save_invoice(draft, user=request.user)
    except ValidationError as e:
        return _validation_response(e)
    except Invoice.DoesNotExist:
        return JsonResponse({'success': False, 'message': f"Invoice {draft.invoice_id} not found"}, status=404)
    except PersistenceError as e:
        return JsonResponse({'success': False, 'message': 'Failed to save invoice', 'error': str(e)}, status=500)

    return JsonResponse({
        'success': True,
        'message': f'Invoice {invoice.invoice_number} saved',
        'invoice_id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'totals': draft.totals.as_dict(),
    })


@login_required
@require_http_methods(["POST"])
def api_invoice_mark_paid(request, pk):
    """Record a payment for an invoice and mark it paid"""
    invoice = get_object_or_404(Invoice, pk=pk)
    data = _load_payload(request)
    if data is None:
        return JsonResponse({'success': False, 'message': 'Invalid JSON body'}, status=400)

    form = PaymentForm(data)
    if not form.is_valid():
        return JsonResponse({'success': False, 'message': 'Payment is not valid', 'errors': form.errors.get_json_data()}, status=400)

    try:
        payment = InvoiceService.mark_paid(
            invoice.id,
            method=form.cleaned_data['method'],
            amount=form.cleaned_data.get('amount'),
            reference=form.cleaned_data.get('reference'),
            notes=form.cleaned_data.get('notes'),
        )
    except ValidationError as e:
        return _validation_response(e)
    except PersistenceError as e:
        return JsonResponse({'success': False, 'message': 'Failed to record payment', 'error': str(e)}, status=500)

    return JsonResponse({
        'success': True,
        'message': f'Invoice {invoice.invoice_number} marked as paid',
        'payment_id': payment.id,
        'amount': float(payment.amount),
        'status': 'paid',
    })


@login_required
@require_http_methods(["POST"])
def api_invoice_send(request, pk):
    """Email the invoice to the customer; status becomes sent on success"""
    invoice = get_object_or_404(Invoice, pk=pk)
    data = _load_payload(request) or {}
    to_address = data.get('to_address')
    if to_address is not None and not isinstance(to_address, str):
        return _validation_response(ValidationError({'to_address': ['Enter a valid email address.']}))
    to_address = (to_address or '').strip() or None

    try:
        invoice = InvoiceService.send_invoice(invoice.id, to_address=to_address)
    except ValidationError as e:
        return _validation_response(e)
    except TransportError as e:
        return JsonResponse({'success': False, 'message': 'Failed to send invoice', 'error': str(e)}, status=502)
    except PersistenceError as e:
        return JsonResponse({'success': False, 'message': 'Invoice sent but status not updated', 'error': str(e)}, status=500)

    return JsonResponse({
        'success': True,
        'message': f'Invoice {invoice.invoice_number} sent',
        'status': invoice.status,
    })


@login_required
@require_http_methods(["GET"])
def api_parts_lookup(request):
    """
    Search the parts catalog for the part picker.

    Query parameters:
    - q: part number or name fragment (optional)
    """
    q = (request.GET.get('q') or '').strip()
    qs = Part.objects.filter(is_active=True)
    if q:
        qs = qs.filter(Q(part_number__icontains=q) | Q(name__icontains=q))
    parts = [
        {
            'id': part.id,
            'part_number': part.part_number,
            'name': part.name,
            'cost': float(part.cost or 0),
        }
        for part in qs[:25]
    ]
    return JsonResponse({'success': True, 'parts': parts})


@login_required
@require_http_methods(["GET", "POST"])
def api_invoice_settings(request):
    """Read or update the shop's invoice settings"""
    settings_obj = InvoiceSettings.load()

    if request.method == 'POST':
        data = _load_payload(request)
        if data is None:
            return JsonResponse({'success': False, 'message': 'Invalid JSON body'}, status=400)
        # Partial updates keep the current values of omitted fields
        merged = {**model_to_dict(settings_obj, fields=InvoiceSettingsForm._meta.fields), **data}
        form = InvoiceSettingsForm(merged, instance=settings_obj)
        if not form.is_valid():
            return JsonResponse({'success': False, 'message': 'Settings are not valid', 'errors': form.errors.get_json_data()}, status=400)
        settings_obj = form.save()
        logger.info(f"Invoice settings updated by {request.user}: {settings_obj}")

    return JsonResponse({
        'success': True,
        'settings': {
            'tax_rate': float(settings_obj.tax_rate),
            'tax_applies_to': settings_obj.tax_applies_to,
            'credit_card_fee_percent': float(settings_obj.credit_card_fee_percent),
            'shop_labor_rate': float(settings_obj.shop_labor_rate),
            'road_labor_rate': float(settings_obj.road_labor_rate),
            'default_parts_markup': float(settings_obj.default_parts_markup),
            'shop_supply_fee_percent': float(settings_obj.shop_supply_fee_percent),
            'disposal_fee': float(settings_obj.disposal_fee),
        },
    })


@login_required
@require_http_methods(["GET"])
def invoice_print(request, pk):
    """Display invoice in print-friendly format"""
    invoice = get_object_or_404(Invoice.objects.select_related('job'), pk=pk)
    return HttpResponse(InvoiceService.render_invoice(invoice))
