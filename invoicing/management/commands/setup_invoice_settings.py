from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError

from invoicing.models import InvoiceSettings, TAX_APPLIES_TO_CHOICES


DEFAULT_SETTINGS = {
    'tax_rate': Decimal('8.5'),
    'tax_applies_to': 'both',
    'credit_card_fee_percent': Decimal('3'),
    'shop_labor_rate': Decimal('150'),
    'road_labor_rate': Decimal('175'),
    'default_parts_markup': Decimal('30'),
    'shop_supply_fee_percent': Decimal('5'),
    'disposal_fee': Decimal('25'),
}


class Command(BaseCommand):
    help = 'Create or update the shop invoice settings'

    def add_arguments(self, parser):
        for name, default in DEFAULT_SETTINGS.items():
            parser.add_argument(f"--{name.replace('_', '-')}", dest=name, default=None,
                                help=f"Default: {default}")
        parser.add_argument('--keep-existing', action='store_true',
                            help='Only fill in settings when the row does not exist yet')

    def handle(self, *args, **options):
        exists = InvoiceSettings.objects.filter(pk=1).exists()
        if exists and options['keep_existing']:
            self.stdout.write(self.style.WARNING('Invoice settings already exist; leaving them unchanged'))
            return

        settings_obj = InvoiceSettings.load()
        for name, default in DEFAULT_SETTINGS.items():
            raw = options.get(name)
            if raw is None:
                if exists:
                    continue
                value = default
            elif name == 'tax_applies_to':
                if raw not in dict(TAX_APPLIES_TO_CHOICES):
                    raise CommandError(f"--tax-applies-to must be one of: {', '.join(dict(TAX_APPLIES_TO_CHOICES))}")
                value = raw
            else:
                try:
                    value = Decimal(raw)
                except InvalidOperation:
                    raise CommandError(f"--{name.replace('_', '-')} must be a number, got {raw!r}")
                if value < 0:
                    raise CommandError(f"--{name.replace('_', '-')} cannot be negative")
            setattr(settings_obj, name, value)
        settings_obj.save()

        action = 'Updated' if exists else 'Created'
        self.stdout.write(self.style.SUCCESS(f'{action} invoice settings: {settings_obj}'))
