from decimal import Decimal

import pytest
from django.contrib.auth.models import User

from invoicing.models import InvoiceSettings, Job, Part


@pytest.fixture
def shop_settings(db):
    settings_obj = InvoiceSettings.load()
    settings_obj.tax_rate = Decimal('8.5')
    settings_obj.tax_applies_to = 'both'
    settings_obj.credit_card_fee_percent = Decimal('3')
    settings_obj.shop_labor_rate = Decimal('150')
    settings_obj.road_labor_rate = Decimal('175')
    settings_obj.default_parts_markup = Decimal('20')
    settings_obj.shop_supply_fee_percent = Decimal('5')
    settings_obj.disposal_fee = Decimal('25')
    settings_obj.save()
    return settings_obj


@pytest.fixture
def job(db):
    return Job.objects.create(
        customer_name='Dale Hutchins',
        company='Hutchins Freight',
        customer_email='dale@hutchinsfreight.test',
        billing_address='12 Depot Rd\nAmarillo, TX',
        truck_vin='1XKYD49X0HJ123456',
        service_type='shop',
        description='Check engine light, low power on grades',
    )


@pytest.fixture
def road_job(db):
    return Job.objects.create(customer_name='Road Call', service_type='road')


@pytest.fixture
def filter_part(db):
    return Part.objects.create(part_number='FF5488', name='Fuel filter', cost=Decimal('10.00'))


@pytest.fixture
def turbo_part(db):
    return Part.objects.create(part_number='TB-2210', name='Turbo actuator', cost=Decimal('100.00'))


@pytest.fixture
def user(db):
    return User.objects.create_user(username='writer', password='s3cret-pass')


@pytest.fixture
def api_client(client, user):
    client.force_login(user)
    return client
