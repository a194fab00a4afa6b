"""
Part line auto-pricing from the parts catalog.
"""

import logging
from decimal import Decimal
from typing import Callable, Optional

from django.core.exceptions import ObjectDoesNotExist

from invoicing.models import Part
from invoicing.utils import ensure_decimal, quantize_money, HUNDRED

logger = logging.getLogger(__name__)

PRICING_AUTO = 'auto'
PRICING_OVERRIDE = 'override'

# Signature of a catalog lookup: part id -> unit cost, raising ObjectDoesNotExist when unknown
UnitCostResolver = Callable[[object], Decimal]


def resolve_unit_cost(part_id) -> Decimal:
    """Look up the unit cost of an active catalog part. Raises Part.DoesNotExist."""
    part = Part.objects.only('cost').get(pk=part_id, is_active=True)
    return ensure_decimal(part.cost)


def calculate_final_price(quantity, unit_cost, markup_percent) -> Decimal:
    """quantity x unit cost x (1 + markup/100), rounded to cents"""
    qty = ensure_decimal(quantity)
    cost = ensure_decimal(unit_cost)
    markup = ensure_decimal(markup_percent)
    return quantize_money(qty * cost * (1 + markup / HUNDRED))


def apply_auto_price(line, resolver: Optional[UnitCostResolver] = None) -> bool:
    """
    Re-price a part line from the catalog after its part, quantity or markup changed.

    The line's `unit_cost` and `final_price` are overwritten and its pricing
    mode becomes auto. When the part does not resolve (no part selected, part
    deleted or deactivated) nothing is changed.

    Returns:
        True if the line was re-priced.
    """
    resolver = resolver or resolve_unit_cost
    if line.part_id in (None, ''):
        return False
    try:
        unit_cost = resolver(line.part_id)
    except (ObjectDoesNotExist, ValueError, TypeError):
        logger.debug(f"Part {line.part_id!r} not found in catalog; keeping final price {line.final_price}")
        return False

    line.unit_cost = ensure_decimal(unit_cost)
    line.final_price = calculate_final_price(line.quantity, line.unit_cost, line.markup_percent)
    line.pricing = PRICING_AUTO
    return True
