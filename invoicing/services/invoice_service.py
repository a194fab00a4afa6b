"""
Invoice persistence, payment recording and sending.
Every flow that writes an invoice goes through InvoiceService so the header,
line items and status transitions stay consistent across views, admin and
management commands.
"""

import logging
from typing import Dict, List, Optional

from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import transaction, DatabaseError
from django.template.loader import render_to_string

from invoicing.exceptions import PersistenceError, TransportError
from invoicing.models import Invoice, InvoiceLabor, InvoicePart, Payment
from invoicing.services.drafts import InvoiceDraft
from invoicing.transport import send_invoice_email
from invoicing.utils import ensure_decimal, format_money

logger = logging.getLogger(__name__)


def validate_draft(draft: InvoiceDraft) -> Dict[str, List[str]]:
    """
    Check a draft before it is written. Every problem is collected.

    Returns:
        Dict of field name -> messages; empty when the draft can be saved
    """
    errors: Dict[str, List[str]] = {}

    if draft.job is None:
        errors['job'] = ['Select the job this invoice is for.']
    if not draft.invoice_date:
        errors['invoice_date'] = ['Invoice date is required.']
    if not (draft.work_performed or '').strip():
        errors['work_performed'] = ['Describe the work performed.']
    if not draft.labor:
        errors['labor_entries'] = ['Add at least one labor entry.']
    if draft.totals.grand_total <= 0:
        errors['grand_total'] = ['Grand total must be greater than zero.']
    if draft.payment_method not in dict(Invoice.PAYMENT_METHOD_CHOICES):
        errors['payment_method'] = [f"Unknown payment method '{draft.payment_method}'."]

    for i, line in enumerate(draft.labor):
        problems = []
        if not (line.description or '').strip():
            problems.append('Description is required.')
        if line.hours <= 0:
            problems.append('Hours must be greater than zero.')
        if line.rate < 0:
            problems.append('Rate cannot be negative.')
        if problems:
            errors[f'labor_entries.{i}'] = problems

    for i, line in enumerate(draft.parts):
        problems = []
        if line.quantity != int(line.quantity):
            problems.append('Quantity must be a whole number.')
        if line.quantity < 1:
            problems.append('Quantity must be at least 1.')
        if line.markup_percent < 0:
            problems.append('Markup cannot be negative.')
        if line.final_price < 0:
            problems.append('Final price cannot be negative.')
        if problems:
            errors[f'part_entries.{i}'] = problems

    return errors


class InvoiceService:
    """Service for saving invoices and moving them through pending -> sent -> paid."""

    @staticmethod
    def save_invoice(draft: InvoiceDraft, user: Optional[User] = None) -> Invoice:
        """
        Validate and persist a draft: upsert the header, then replace its
        labor and part rows.

        All writes run in one transaction; if any step fails nothing of this
        save is kept. There is no concurrency token, so two sessions saving
        the same invoice are last-write-wins.

        Args:
            draft: the edited invoice
            user: recorded as created_by when the invoice is new

        Returns:
            The saved Invoice

        Raises:
            ValidationError: required fields missing or invalid; nothing written
            Invoice.DoesNotExist: the draft's invoice id is unknown; nothing written
            PersistenceError: a database write failed
        """
        draft.recompute()
        errors = validate_draft(draft)
        if errors:
            logger.warning(f"Invoice save rejected: {sorted(errors)}")
            raise ValidationError(errors)

        try:
            with transaction.atomic():
                invoice = InvoiceService._write_header(draft, user)

                InvoiceLabor.objects.filter(invoice=invoice).delete()
                InvoicePart.objects.filter(invoice=invoice).delete()

                InvoiceLabor.objects.bulk_create([
                    InvoiceLabor(
                        invoice=invoice,
                        description=line.description.strip(),
                        hours=line.hours,
                        rate=line.rate,
                        position=i,
                    )
                    for i, line in enumerate(draft.labor)
                ])
                if draft.parts:
                    InvoicePart.objects.bulk_create([
                        InvoicePart(
                            invoice=invoice,
                            part_id=line.part_id,
                            quantity=line.quantity,
                            unit_cost=line.unit_cost,
                            markup_percent=line.markup_percent,
                            final_price=line.final_price,
                            pricing=line.pricing,
                            position=i,
                        )
                        for i, line in enumerate(draft.parts)
                    ])
        except DatabaseError as e:
            logger.error(f"Failed to save invoice {draft.invoice_id or '(new)'}: {e}")
            raise PersistenceError(str(e)) from e

        draft.invoice_id = invoice.pk
        draft.status = invoice.status
        logger.info(
            f"Saved invoice {invoice.invoice_number}: {len(draft.labor)} labor, "
            f"{len(draft.parts)} parts, total={invoice.grand_total}"
        )
        return invoice

    @staticmethod
    def _write_header(draft: InvoiceDraft, user: Optional[User]) -> Invoice:
        if draft.invoice_id:
            try:
                invoice = Invoice.objects.get(pk=draft.invoice_id)
            except Invoice.DoesNotExist:
                raise Invoice.DoesNotExist(f"Invoice {draft.invoice_id} does not exist")
        else:
            invoice = Invoice(status='pending', created_by=user)
            invoice.generate_invoice_number()

        totals = draft.totals
        invoice.job = draft.job
        invoice.invoice_date = draft.invoice_date
        invoice.work_performed = draft.work_performed.strip()
        invoice.payment_method = draft.payment_method
        invoice.misc_fees = [fee.as_json() for fee in draft.misc_fees]
        invoice.subtotal = totals.subtotal
        invoice.tax_rate = ensure_decimal(draft.settings.tax_rate)
        invoice.tax_amount = totals.tax
        invoice.cc_fee = totals.cc_fee
        invoice.grand_total = totals.grand_total
        invoice.save()
        return invoice

    @staticmethod
    def mark_paid(
        invoice_id: int,
        method: str,
        amount=None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        """
        Record a payment, then mark the invoice paid.

        The payment row is written first; if that fails the status is left
        untouched.

        Args:
            invoice_id: invoice being paid
            method: one of Payment.PAYMENT_METHOD_CHOICES
            amount: defaults to the invoice grand total
            reference: check number / transaction id

        Raises:
            Invoice.DoesNotExist: unknown invoice
            ValidationError: unknown payment method or invalid amount
            PersistenceError: a database write failed
        """
        invoice = Invoice.objects.get(pk=invoice_id)

        if method not in dict(Payment.PAYMENT_METHOD_CHOICES):
            raise ValidationError({'method': [f"Unknown payment method '{method}'."]})
        paid_amount = ensure_decimal(amount, None) if amount not in (None, '') else invoice.grand_total
        if paid_amount is None or paid_amount <= 0:
            raise ValidationError({'amount': ['Payment amount must be greater than zero.']})

        try:
            payment = Payment.objects.create(
                invoice=invoice,
                method=method,
                amount=paid_amount,
                reference=(reference or '').strip() or None,
                notes=(notes or '').strip() or None,
            )
        except DatabaseError as e:
            logger.error(f"Failed to record payment for invoice {invoice.invoice_number}: {e}")
            raise PersistenceError(str(e)) from e

        try:
            invoice.status = 'paid'
            invoice.save(update_fields=['status', 'updated_at'])
        except DatabaseError as e:
            logger.error(f"Payment {payment.pk} recorded but invoice {invoice.invoice_number} not marked paid: {e}")
            raise PersistenceError(str(e)) from e

        logger.info(f"Invoice {invoice.invoice_number} paid: {paid_amount} by {method}")
        return payment

    @staticmethod
    def render_invoice(invoice: Invoice) -> str:
        """Static HTML snapshot of a saved invoice"""
        fees = [
            {'description': fee.get('description') or '', 'amount': ensure_decimal(fee.get('amount'))}
            for fee in (invoice.misc_fees or [])
            if isinstance(fee, dict)
        ]
        context = {
            'invoice': invoice,
            'job': invoice.job,
            'labor_entries': list(invoice.labor_entries.all()),
            'part_entries': list(invoice.part_entries.select_related('part')),
            'misc_fees': fees,
            'shop': {
                'name': getattr(settings, 'SHOP_NAME', ''),
                'address': getattr(settings, 'SHOP_ADDRESS', ''),
                'phone': getattr(settings, 'SHOP_PHONE', ''),
            },
        }
        return render_to_string('invoicing/invoice_email.html', context)

    @staticmethod
    def send_invoice(invoice_id: int, to_address: Optional[str] = None) -> Invoice:
        """
        Email an invoice and mark it sent.

        The status changes only after the transport accepted the message; a
        paid invoice stays paid.

        Raises:
            Invoice.DoesNotExist: unknown invoice
            ValidationError: no recipient address
            TransportError: the email could not be sent; status unchanged
        """
        invoice = Invoice.objects.select_related('job').get(pk=invoice_id)
        recipient = (to_address or invoice.job.customer_email or '').strip()
        if not recipient:
            raise ValidationError({'to_address': ['No email address for this customer.']})

        shop_name = getattr(settings, 'SHOP_NAME', '') or 'our shop'
        html = InvoiceService.render_invoice(invoice)
        subject = f"Your Invoice from {shop_name} - #{invoice.invoice_number}"
        text = (
            f"Your invoice from {shop_name} is attached. Invoice ID: {invoice.invoice_number}. "
            f"Total: {format_money(invoice.grand_total)}."
        )

        try:
            send_invoice_email(recipient, html, subject, text)
        except TransportError as e:
            logger.warning(f"Failed to send invoice {invoice.invoice_number} to {recipient}: {e}")
            raise

        if invoice.status != 'paid':
            try:
                invoice.status = 'sent'
                invoice.save(update_fields=['status', 'updated_at'])
            except DatabaseError as e:
                logger.error(f"Invoice {invoice.invoice_number} emailed but not marked sent: {e}")
                raise PersistenceError(str(e)) from e
        return invoice
