from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from invoicing.models import InvoiceSettings

pytestmark = pytest.mark.django_db


def test_creates_default_settings():
    out = StringIO()
    call_command('setup_invoice_settings', stdout=out)

    settings_obj = InvoiceSettings.load()
    assert settings_obj.tax_rate == Decimal('8.5')
    assert settings_obj.road_labor_rate == Decimal('175')
    assert 'Created' in out.getvalue()


def test_updates_only_given_values():
    call_command('setup_invoice_settings', stdout=StringIO())
    call_command('setup_invoice_settings', '--tax-rate', '6.25', '--tax-applies-to', 'labor', stdout=StringIO())

    settings_obj = InvoiceSettings.load()
    assert settings_obj.tax_rate == Decimal('6.25')
    assert settings_obj.tax_applies_to == 'labor'
    assert settings_obj.shop_labor_rate == Decimal('150')


def test_keep_existing():
    call_command('setup_invoice_settings', '--disposal-fee', '40', stdout=StringIO())
    call_command('setup_invoice_settings', '--keep-existing', '--disposal-fee', '10', stdout=StringIO())
    assert InvoiceSettings.load().disposal_fee == Decimal('40')


@pytest.mark.parametrize('args', [
    ['--tax-rate', 'lots'],
    ['--shop-labor-rate', '-1'],
    ['--tax-applies-to', 'fees'],
])
def test_rejects_bad_values(args):
    with pytest.raises(CommandError):
        call_command('setup_invoice_settings', *args, stdout=StringIO())
