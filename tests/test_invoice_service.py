import smtplib
from decimal import Decimal
from unittest import mock

import pytest
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.utils import timezone

from invoicing.exceptions import PersistenceError, TransportError
from invoicing.models import Invoice, InvoiceLabor, InvoicePart, Payment
from invoicing.services import InvoiceDraft, InvoiceService, validate_draft

pytestmark = pytest.mark.django_db


@pytest.fixture
def draft(job, shop_settings, turbo_part):
    draft = InvoiceDraft.for_job(job)
    draft.work_performed = 'Replaced turbo actuator'
    draft.add_labor('Replace turbo actuator', 2, 150)
    draft.add_part(turbo_part.pk, quantity=1, markup_percent=0)
    return draft


@pytest.fixture
def saved_invoice(draft, user):
    return InvoiceService.save_invoice(draft, user=user)


def test_save_new_invoice(draft, user):
    invoice = InvoiceService.save_invoice(draft, user=user)

    assert invoice.invoice_number == f"INV-{timezone.now().year}-00001"
    assert invoice.status == 'pending'
    assert invoice.created_by == user
    assert invoice.subtotal == Decimal('400.00')
    assert invoice.tax_rate == Decimal('8.50')
    assert invoice.tax_amount == Decimal('34.00')
    assert invoice.cc_fee == Decimal('0')
    assert invoice.grand_total == Decimal('434.00')
    assert invoice.labor_entries.count() == 1
    assert invoice.part_entries.count() == 1
    assert draft.invoice_id == invoice.pk


def test_invoice_numbers_are_sequential(draft, job):
    first = InvoiceService.save_invoice(draft)
    second_draft = InvoiceDraft.for_job(job)
    second_draft.add_labor('Diagnose', 1)
    second = InvoiceService.save_invoice(second_draft)
    assert int(second.invoice_number[-5:]) == int(first.invoice_number[-5:]) + 1


def test_update_replaces_line_items(saved_invoice, filter_part):
    draft = InvoiceDraft.from_invoice(saved_invoice)
    draft.remove_part(0)
    draft.add_part(filter_part.pk, quantity=3)
    draft.add_labor('Road test', Decimal('0.5'))
    draft.add_fee('Disposal fee', 25)
    draft.set_payment_method('stripe')

    invoice = InvoiceService.save_invoice(draft)

    assert invoice.pk == saved_invoice.pk
    assert invoice.invoice_number == saved_invoice.invoice_number
    assert [row.description for row in invoice.labor_entries.all()] == ['Replace turbo actuator', 'Road test']
    assert [row.part_id for row in invoice.part_entries.all()] == [filter_part.pk]
    assert invoice.misc_fees == [{'description': 'Disposal fee', 'amount': '25.00'}]
    # 300 + 75 labor, 36 parts, 34.94 tax, 25 fee, 3% card fee on 470.94
    assert invoice.grand_total == Decimal('485.07')
    assert InvoiceLabor.objects.filter(invoice=invoice).count() == 2


def test_save_without_parts_skips_part_insert(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Diagnose', 1)
    with mock.patch.object(InvoicePart.objects, 'bulk_create') as bulk_create:
        invoice = InvoiceService.save_invoice(draft)
    bulk_create.assert_not_called()
    assert invoice.grand_total == Decimal('162.75')


def test_missing_labor_and_work_description_lists_both(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.work_performed = ''
    draft.add_part()
    draft.update_part(0, final_price=100)

    with pytest.raises(ValidationError) as exc_info:
        InvoiceService.save_invoice(draft)

    assert sorted(exc_info.value.message_dict) == ['labor_entries', 'work_performed']
    assert not Invoice.objects.exists()
    assert not InvoicePart.objects.exists()


def test_validation_collects_every_problem(shop_settings):
    draft = InvoiceDraft(settings=shop_settings, payment_method='venmo')
    draft.add_labor('', 0, -1)
    draft.add_part(quantity=0)

    errors = validate_draft(draft)

    assert set(errors) == {
        'job', 'invoice_date', 'work_performed', 'grand_total', 'payment_method',
        'labor_entries.0', 'part_entries.0',
    }
    assert len(errors['labor_entries.0']) == 3


def test_failed_write_keeps_nothing(draft):
    with mock.patch.object(InvoicePart.objects, 'bulk_create', side_effect=DatabaseError('disk I/O error')):
        with pytest.raises(PersistenceError, match='disk I/O error'):
            InvoiceService.save_invoice(draft)

    assert not Invoice.objects.exists()
    assert not InvoiceLabor.objects.exists()
    assert draft.invoice_id is None


def test_failed_update_keeps_previous_lines(saved_invoice, filter_part):
    draft = InvoiceDraft.from_invoice(saved_invoice)
    draft.add_part(filter_part.pk)

    with mock.patch.object(InvoiceLabor.objects, 'bulk_create', side_effect=DatabaseError('locked')):
        with pytest.raises(PersistenceError):
            InvoiceService.save_invoice(draft)

    saved_invoice.refresh_from_db()
    assert saved_invoice.grand_total == Decimal('434.00')
    assert saved_invoice.labor_entries.count() == 1
    assert saved_invoice.part_entries.count() == 1


def test_saving_deleted_invoice_fails(saved_invoice):
    draft = InvoiceDraft.from_invoice(saved_invoice)
    draft.invoice_id = saved_invoice.pk + 100
    with pytest.raises(Invoice.DoesNotExist):
        InvoiceService.save_invoice(draft)
    assert Invoice.objects.count() == 1


def test_fractional_hours_saved_totals_match_lines(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    line = draft.add_labor('Diagnose no-start', '1.335', '100')
    assert line.hours == Decimal('1.34')

    invoice = InvoiceService.save_invoice(draft)
    reloaded = InvoiceDraft.from_invoice(Invoice.objects.get(pk=invoice.pk))

    assert invoice.subtotal == Decimal('134.00')
    assert invoice.grand_total == Decimal('145.39')
    assert reloaded.totals.subtotal == invoice.subtotal
    assert reloaded.grand_total == invoice.grand_total
    assert sum(row.amount for row in invoice.labor_entries.all()) == invoice.subtotal


def test_fractional_quantity_is_rejected(job, shop_settings, filter_part):
    draft = InvoiceDraft.from_payload({
        'job_id': job.pk,
        'invoice_date': '2026-05-02',
        'work_performed': 'Fuel filters',
        'labor_entries': [{'description': 'Filters', 'hours': 1, 'rate': 150}],
        'part_entries': [{'part_id': filter_part.pk, 'quantity': '2.7'}],
    })
    assert draft.parts[0].quantity == Decimal('2.7')

    with pytest.raises(ValidationError) as exc_info:
        InvoiceService.save_invoice(draft)

    assert exc_info.value.message_dict == {'part_entries.0': ['Quantity must be a whole number.']}
    assert not Invoice.objects.exists()


def test_concurrent_saves_lose_first_sessions_parts(saved_invoice, filter_part):
    # No concurrency token: the second save replaces the first save's lines
    session_a = InvoiceDraft.from_invoice(saved_invoice)
    session_b = InvoiceDraft.from_invoice(saved_invoice)
    session_a.add_part(filter_part.pk, quantity=2)
    session_b.add_part(filter_part.pk, quantity=5)

    InvoiceService.save_invoice(session_a)
    InvoiceService.save_invoice(session_b)

    quantities = sorted(row.quantity for row in saved_invoice.part_entries.all())
    assert quantities == [1, 5]


def test_mark_paid(saved_invoice):
    payment = InvoiceService.mark_paid(saved_invoice.pk, 'check', reference=' 10442 ')

    saved_invoice.refresh_from_db()
    assert saved_invoice.status == 'paid'
    assert payment.amount == Decimal('434.00')
    assert payment.reference == '10442'
    assert payment.invoice == saved_invoice


def test_mark_paid_with_partial_amount(saved_invoice):
    payment = InvoiceService.mark_paid(saved_invoice.pk, 'cash', amount='200')
    assert payment.amount == Decimal('200')


def test_mark_paid_failed_payment_leaves_status(saved_invoice):
    with mock.patch.object(Payment.objects, 'create', side_effect=DatabaseError('constraint failed')):
        with pytest.raises(PersistenceError):
            InvoiceService.mark_paid(saved_invoice.pk, 'cash')

    saved_invoice.refresh_from_db()
    assert saved_invoice.status == 'pending'
    assert not Payment.objects.exists()


@pytest.mark.parametrize('method,amount,field', [
    ('stripe', None, 'method'),
    ('cash', '-5', 'amount'),
    ('cash', 'abc', 'amount'),
])
def test_mark_paid_rejects_bad_input(saved_invoice, method, amount, field):
    with pytest.raises(ValidationError) as exc_info:
        InvoiceService.mark_paid(saved_invoice.pk, method, amount=amount)
    assert field in exc_info.value.message_dict
    saved_invoice.refresh_from_db()
    assert saved_invoice.status == 'pending'


def test_mark_paid_unknown_invoice():
    with pytest.raises(Invoice.DoesNotExist):
        InvoiceService.mark_paid(987654, 'cash')


def test_render_invoice(saved_invoice, settings):
    settings.SHOP_NAME = 'Panhandle Diesel'
    html = InvoiceService.render_invoice(saved_invoice)
    assert saved_invoice.invoice_number in html
    assert 'Panhandle Diesel' in html
    assert 'Turbo actuator (TB-2210)' in html
    assert '$434.00' in html
    assert 'Unit: 123456' in html


def test_send_invoice(saved_invoice, mailoutbox, settings):
    settings.SHOP_NAME = 'Panhandle Diesel'
    invoice = InvoiceService.send_invoice(saved_invoice.pk)

    assert invoice.status == 'sent'
    saved_invoice.refresh_from_db()
    assert saved_invoice.status == 'sent'
    assert len(mailoutbox) == 1
    message = mailoutbox[0]
    assert message.to == ['dale@hutchinsfreight.test']
    assert message.subject == f"Your Invoice from Panhandle Diesel - #{saved_invoice.invoice_number}"
    assert message.alternatives[0][1] == 'text/html'


def test_send_to_other_address(saved_invoice, mailoutbox):
    InvoiceService.send_invoice(saved_invoice.pk, to_address='ap@fleet.test')
    assert mailoutbox[0].to == ['ap@fleet.test']


def test_send_failure_leaves_status(saved_invoice, mailoutbox):
    with mock.patch('invoicing.transport.EmailMultiAlternatives.send', side_effect=smtplib.SMTPException('relay refused')):
        with pytest.raises(TransportError, match='relay refused'):
            InvoiceService.send_invoice(saved_invoice.pk)

    saved_invoice.refresh_from_db()
    assert saved_invoice.status == 'pending'
    assert mailoutbox == []


def test_send_without_recipient(saved_invoice, mailoutbox):
    saved_invoice.job.customer_email = ''
    saved_invoice.job.save()
    with pytest.raises(ValidationError):
        InvoiceService.send_invoice(saved_invoice.pk)
    assert mailoutbox == []


def test_resending_paid_invoice_keeps_it_paid(saved_invoice, mailoutbox):
    InvoiceService.mark_paid(saved_invoice.pk, 'cash')
    invoice = InvoiceService.send_invoice(saved_invoice.pk)
    assert invoice.status == 'paid'
    assert len(mailoutbox) == 1
