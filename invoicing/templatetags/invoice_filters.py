"""
Template filters for rendering invoice amounts and line items
"""

from django import template

from invoicing.utils import ensure_decimal, format_money, quantize_money

register = template.Library()


@register.filter
def money(value):
    """Display an amount as $1,234.50"""
    return format_money(value)


@register.filter
def unit_price(part_line):
    """
    Per-unit selling price of a part line (final price / quantity).
    Falls back to the final price when the quantity is missing.
    """
    if not part_line:
        return format_money(0)
    quantity = ensure_decimal(getattr(part_line, 'quantity', None))
    final_price = ensure_decimal(getattr(part_line, 'final_price', None))
    if quantity <= 0:
        return format_money(final_price)
    return format_money(quantize_money(final_price / quantity))


@register.filter
def vin_unit(vin):
    """Last six characters of a VIN, used as the truck's unit number."""
    if not vin:
        return ''
    return str(vin)[-6:]


@register.filter
def status_color(status):
    """Badge color for an invoice status"""
    colors = {
        'paid': '#16a34a',
        'sent': '#2563eb',
        'pending': '#f97316',
    }
    return colors.get(status, colors['pending'])
