"""
Invoice totals aggregation.

`compute_totals` is a pure function of the labor, part and fee lines, the
selected payment method and the shop's invoice settings. Entries may be model
instances, draft lines or plain dicts; missing or non-numeric values count as
zero and never raise.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from invoicing.models import CARD_PAYMENT_METHODS
from invoicing.utils import ensure_decimal, quantize_money, percent_of, entry_value, ZERO


@dataclass(frozen=True)
class InvoiceTotals:
    labor_total: Decimal = ZERO
    parts_total: Decimal = ZERO
    subtotal: Decimal = ZERO
    taxable_base: Decimal = ZERO
    tax: Decimal = ZERO
    misc_fees_total: Decimal = ZERO
    pre_surcharge_total: Decimal = ZERO
    cc_fee: Decimal = ZERO
    grand_total: Decimal = ZERO

    def as_dict(self) -> Dict[str, float]:
        """JSON-friendly view of the totals"""
        return {key: float(value) for key, value in asdict(self).items()}


def is_card_payment(payment_method: Optional[str]) -> bool:
    return (payment_method or '') in CARD_PAYMENT_METHODS


def labor_line_amount(entry: Any) -> Decimal:
    hours = ensure_decimal(entry_value(entry, 'hours'))
    rate = ensure_decimal(entry_value(entry, 'rate'))
    return quantize_money(hours * rate)


def sum_labor(labor: Iterable[Any]) -> Decimal:
    return sum((labor_line_amount(entry) for entry in labor or []), ZERO)


def sum_parts(parts: Iterable[Any]) -> Decimal:
    return sum((quantize_money(entry_value(entry, 'final_price')) for entry in parts or []), ZERO)


def sum_fees(misc_fees: Iterable[Any]) -> Decimal:
    return sum((quantize_money(entry_value(fee, 'amount')) for fee in misc_fees or []), ZERO)


def taxable_base_for(tax_applies_to: str, labor_total: Decimal, parts_total: Decimal) -> Decimal:
    """Select the part of the subtotal the tax rate applies to."""
    if tax_applies_to == 'labor':
        return labor_total
    if tax_applies_to == 'parts':
        return parts_total
    return labor_total + parts_total


def compute_totals(labor, parts, misc_fees, payment_method, settings) -> InvoiceTotals:
    """
    Combine line items, fees, tax and card surcharge into invoice totals.

    Misc fees are added after tax and are never taxed. The card surcharge is
    applied to subtotal + tax + fees only for card-based payment methods.
    Tax and surcharge are rounded to cents and the grand total is the exact
    sum of the rounded parts.

    Args:
        labor: labor entries with `hours` and `rate`
        parts: part entries with `final_price`
        misc_fees: fee entries with a signed `amount`
        payment_method: selected payment method code
        settings: object exposing `tax_rate`, `tax_applies_to` and
            `credit_card_fee_percent` (normally `InvoiceSettings`)

    Returns:
        InvoiceTotals
    """
    labor_total = sum_labor(labor)
    parts_total = sum_parts(parts)
    subtotal = labor_total + parts_total

    tax_applies_to = getattr(settings, 'tax_applies_to', 'both') or 'both'
    taxable_base = taxable_base_for(tax_applies_to, labor_total, parts_total)
    tax = quantize_money(percent_of(taxable_base, getattr(settings, 'tax_rate', ZERO)))

    misc_fees_total = sum_fees(misc_fees)
    pre_surcharge_total = subtotal + tax + misc_fees_total

    cc_fee = ZERO
    if is_card_payment(payment_method):
        cc_fee = quantize_money(percent_of(pre_surcharge_total, getattr(settings, 'credit_card_fee_percent', ZERO)))

    return InvoiceTotals(
        labor_total=labor_total,
        parts_total=parts_total,
        subtotal=subtotal,
        taxable_base=taxable_base,
        tax=tax,
        misc_fees_total=misc_fees_total,
        pre_surcharge_total=pre_surcharge_total,
        cc_fee=cc_fee,
        grand_total=pre_surcharge_total + cc_fee,
    )
