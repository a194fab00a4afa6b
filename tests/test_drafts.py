from datetime import date
from decimal import Decimal

import pytest

from invoicing.services import InvoiceDraft, InvoiceService
from invoicing.services.pricing import PRICING_AUTO, PRICING_OVERRIDE

pytestmark = pytest.mark.django_db


def test_new_draft_for_job(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    assert draft.job == job
    assert draft.status == 'pending'
    assert draft.payment_method == 'cash'
    assert draft.work_performed == job.description
    assert draft.grand_total == 0


def test_labor_rate_defaults_by_service_type(job, road_job, shop_settings):
    assert InvoiceDraft.for_job(job).add_labor('Diagnose', 1).rate == Decimal('150')
    assert InvoiceDraft.for_job(road_job).add_labor('Road call', 1).rate == Decimal('175')


def test_every_edit_recomputes_totals(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Replace injector', 2, 150)
    assert draft.totals.subtotal == Decimal('300.00')

    draft.update_labor(0, hours=3)
    assert draft.totals.labor_total == Decimal('450.00')

    draft.add_fee('Disposal', 25)
    assert draft.totals.misc_fees_total == Decimal('25.00')

    draft.remove_fee(0)
    draft.remove_labor(0)
    assert draft.grand_total == 0


def test_scenario_totals_through_draft(job, shop_settings, turbo_part):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Replace turbo actuator', 2, 150)
    line = draft.add_part(turbo_part.pk, quantity=1, markup_percent=0)
    assert line.final_price == Decimal('100.00')
    assert draft.grand_total == Decimal('434.00')

    draft.set_payment_method('stripe')
    assert draft.totals.cc_fee == Decimal('13.02')
    assert draft.grand_total == Decimal('447.02')


def test_add_part_uses_default_markup(job, shop_settings, filter_part):
    line = InvoiceDraft.for_job(job).add_part(filter_part.pk, quantity=3)
    assert line.markup_percent == Decimal('20')
    assert line.unit_cost == Decimal('10.00')
    assert line.final_price == Decimal('36.00')
    assert line.pricing == PRICING_AUTO


def test_manual_price_is_kept_until_quantity_changes(job, shop_settings, filter_part):
    draft = InvoiceDraft.for_job(job)
    draft.add_part(filter_part.pk, quantity=3)

    line = draft.update_part(0, final_price='30')
    assert line.final_price == Decimal('30.00')
    assert line.is_overridden
    assert draft.totals.parts_total == Decimal('30.00')

    draft.add_labor('Filter service', 1)
    assert draft.parts[0].final_price == Decimal('30.00')

    line = draft.update_part(0, quantity=4)
    assert line.pricing == PRICING_AUTO
    assert line.final_price == Decimal('48.00')


def test_markup_change_reprices(job, shop_settings, filter_part):
    draft = InvoiceDraft.for_job(job)
    draft.add_part(filter_part.pk, quantity=1)
    draft.update_part(0, final_price=5)
    line = draft.update_part(0, markup_percent=50)
    assert line.final_price == Decimal('15.00')
    assert not line.is_overridden


def test_switching_part_reprices_from_new_catalog_cost(job, shop_settings, filter_part, turbo_part):
    draft = InvoiceDraft.for_job(job)
    draft.add_part(filter_part.pk, quantity=1, markup_percent=0)
    line = draft.update_part(0, part_id=turbo_part.pk)
    assert line.part_id == turbo_part.pk
    assert line.final_price == Decimal('100.00')


def test_unknown_part_leaves_blank_line_at_zero(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    line = draft.add_part(424242, quantity=2)
    assert line.final_price == 0
    assert line.unit_cost is None
    assert draft.totals.parts_total == 0


def test_recompute_reports_change_only_once(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Diagnose', 1, 100)
    draft.labor[0].hours = Decimal('2')
    assert draft.recompute() is True
    assert draft.recompute() is False


def test_recompute_without_changes_keeps_totals_object(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Diagnose', 1, 100)
    before = draft.totals
    assert draft.recompute() is False
    assert draft.totals is before


def test_standard_fees(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Brake job', 2, 150)
    fees = draft.add_standard_fees()
    assert [(fee.description, fee.amount) for fee in fees] == [
        ('Shop supplies', Decimal('15.00')),
        ('Disposal fee', Decimal('25.00')),
    ]
    assert draft.totals.tax == Decimal('25.50')
    assert draft.grand_total == Decimal('365.50')


def test_update_fee(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_fee('Tow', 50)
    draft.update_fee(0, amount='-5.5')
    assert draft.totals.misc_fees_total == Decimal('-5.50')


def test_from_payload(job, shop_settings, filter_part):
    draft = InvoiceDraft.from_payload({
        'job_id': str(job.pk),
        'invoice_date': '2026-03-14',
        'work_performed': 'Replaced fuel filters',
        'payment_method': 'cc_physical',
        'labor_entries': [{'description': 'Filters', 'hours': '1.5', 'rate': '150'}, 'junk'],
        'part_entries': [
            {'part_id': filter_part.pk, 'quantity': 3},
            {'part_id': filter_part.pk, 'quantity': 1, 'final_price': '12.50', 'pricing': 'override'},
        ],
        'misc_fees': [{'description': 'Disposal', 'amount': '25'}],
    })
    assert draft.job == job
    assert draft.invoice_date == date(2026, 3, 14)
    assert len(draft.labor) == 1
    assert draft.parts[0].final_price == Decimal('36.00')
    assert draft.parts[1].final_price == Decimal('12.50')
    assert draft.parts[1].pricing == PRICING_OVERRIDE
    assert draft.totals.subtotal == Decimal('273.50')
    assert draft.totals.cc_fee > 0


def test_from_payload_tolerates_bad_values(shop_settings):
    draft = InvoiceDraft.from_payload({
        'id': 'abc',
        'job_id': 'nope',
        'invoice_date': 'yesterday',
        'labor_entries': 'not a list',
    })
    assert draft.invoice_id is None
    assert draft.job is None
    assert draft.invoice_date is None
    assert draft.labor == []


def test_from_invoice_round_trips_saved_lines(job, shop_settings, filter_part):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Filters', 1)
    draft.add_part(filter_part.pk, quantity=2)
    draft.update_part(0, final_price='20')
    draft.add_fee('Disposal', 25)
    invoice = InvoiceService.save_invoice(draft)

    loaded = InvoiceDraft.from_invoice(invoice)
    assert loaded.invoice_id == invoice.pk
    assert loaded.parts[0].is_overridden
    assert loaded.misc_fees[0].amount == Decimal('25.00')
    assert loaded.grand_total == invoice.grand_total


def test_as_dict(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    draft.add_labor('Diagnose', 1)
    data = draft.as_dict()
    assert data['job_id'] == job.pk
    assert data['labor_entries'][0]['amount'] == 150.0
    assert data['totals']['grand_total'] == float(draft.grand_total)


def test_price_given_with_quantity_change_wins(job, shop_settings, filter_part):
    draft = InvoiceDraft.for_job(job)
    draft.add_part(filter_part.pk, quantity=1)
    line = draft.update_part(0, quantity=5, final_price='55')
    assert line.quantity == 5
    assert line.unit_cost == Decimal('10.00')
    assert line.final_price == Decimal('55.00')
    assert line.is_overridden
    assert draft.totals.parts_total == Decimal('55.00')


def test_labor_hours_and_rate_rounded_to_cents(job, shop_settings):
    draft = InvoiceDraft.for_job(job)
    line = draft.add_labor('Diagnose', '0.333', '150.005')
    assert (line.hours, line.rate) == (Decimal('0.33'), Decimal('150.01'))
    draft.update_labor(0, hours='0.666')
    assert draft.labor[0].hours == Decimal('0.67')
