"""
Editable invoice state.

An InvoiceDraft is the local copy of an invoice being edited. Every mutating
operation re-runs the totals aggregation, and the derived totals are written
back only when they actually changed, so callers that react to changes do not
loop on their own writes.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date

from invoicing.models import Invoice, InvoiceSettings, Job
from invoicing.services.pricing import (
    PRICING_AUTO,
    PRICING_OVERRIDE,
    UnitCostResolver,
    apply_auto_price,
)
from invoicing.services.totals import InvoiceTotals, compute_totals
from invoicing.utils import ensure_decimal, quantize_money, percent_of, ZERO

logger = logging.getLogger(__name__)


@dataclass
class LaborLine:
    description: str = ''
    hours: Decimal = ZERO
    rate: Decimal = ZERO

    @property
    def amount(self) -> Decimal:
        return quantize_money(self.hours * self.rate)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'hours': float(self.hours),
            'rate': float(self.rate),
            'amount': float(self.amount),
        }


@dataclass
class PartLine:
    part_id: Optional[int] = None
    quantity: int = 1
    unit_cost: Optional[Decimal] = None
    markup_percent: Decimal = ZERO
    final_price: Decimal = ZERO
    pricing: str = PRICING_AUTO

    @property
    def is_overridden(self) -> bool:
        return self.pricing == PRICING_OVERRIDE

    def as_dict(self) -> Dict[str, Any]:
        return {
            'part_id': self.part_id,
            'quantity': self.quantity if isinstance(self.quantity, int) else float(self.quantity),
            'unit_cost': float(self.unit_cost) if self.unit_cost is not None else None,
            'markup_percent': float(self.markup_percent),
            'final_price': float(self.final_price),
            'pricing': self.pricing,
        }


@dataclass
class MiscFee:
    description: str = ''
    amount: Decimal = ZERO

    def as_dict(self) -> Dict[str, Any]:
        return {'description': self.description, 'amount': float(self.amount)}

    def as_json(self) -> Dict[str, str]:
        """Shape stored in Invoice.misc_fees"""
        return {'description': self.description, 'amount': str(quantize_money(self.amount))}


def _to_quantity(value, default=1):
    """Whole quantities come back as int; fractional ones stay Decimal so validation can reject them."""
    try:
        quantity = ensure_decimal(value, Decimal(default))
        if quantity == quantity.to_integral_value():
            return int(quantity)
    except (ValueError, ArithmeticError):
        return default
    return quantity


def _to_hours(value) -> Decimal:
    """Round hours or a rate to the 2 decimal places a labor row stores."""
    return quantize_money(value)


def _to_part_id(value) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class InvoiceDraft:
    settings: Any
    job: Optional[Job] = None
    invoice_id: Optional[int] = None
    invoice_date: Optional[date] = None
    work_performed: str = ''
    payment_method: str = 'cash'
    status: str = 'pending'
    labor: List[LaborLine] = field(default_factory=list)
    parts: List[PartLine] = field(default_factory=list)
    misc_fees: List[MiscFee] = field(default_factory=list)
    resolver: Optional[UnitCostResolver] = None
    totals: InvoiceTotals = field(default_factory=InvoiceTotals)
    grand_total: Decimal = ZERO

    def __post_init__(self):
        self.recompute()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def for_job(cls, job: Job, settings=None, resolver=None) -> "InvoiceDraft":
        """New pending invoice for a job."""
        return cls(
            settings=settings or InvoiceSettings.load(),
            job=job,
            invoice_date=timezone.localdate(),
            work_performed=job.description or '',
            resolver=resolver,
        )

    @classmethod
    def from_invoice(cls, invoice: Invoice, settings=None, resolver=None) -> "InvoiceDraft":
        """Editable copy of a saved invoice and its line items."""
        labor = [
            LaborLine(description=row.description, hours=row.hours, rate=row.rate)
            for row in invoice.labor_entries.all()
        ]
        parts = [
            PartLine(
                part_id=row.part_id,
                quantity=row.quantity,
                unit_cost=row.unit_cost,
                markup_percent=row.markup_percent,
                final_price=row.final_price,
                pricing=row.pricing,
            )
            for row in invoice.part_entries.all()
        ]
        fees = [
            MiscFee(description=str(fee.get('description') or ''), amount=ensure_decimal(fee.get('amount')))
            for fee in (invoice.misc_fees or [])
            if isinstance(fee, dict)
        ]
        return cls(
            settings=settings or InvoiceSettings.load(),
            job=invoice.job,
            invoice_id=invoice.pk,
            invoice_date=invoice.invoice_date,
            work_performed=invoice.work_performed or '',
            payment_method=invoice.payment_method,
            status=invoice.status,
            labor=labor,
            parts=parts,
            misc_fees=fees,
            resolver=resolver,
        )

    @classmethod
    def from_payload(cls, data: Dict[str, Any], settings=None, resolver=None) -> "InvoiceDraft":
        """
        Build a draft from a JSON request body.

        Expected keys: id, job_id, invoice_date (YYYY-MM-DD), work_performed,
        payment_method, labor_entries, part_entries, misc_fees. Part entries
        without a final price are auto-priced from the catalog.
        """
        settings = settings or InvoiceSettings.load()

        job = None
        job_id = data.get('job_id')
        if job_id not in (None, ''):
            try:
                job = Job.objects.filter(pk=int(job_id)).first()
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid job id in invoice payload: {job_id!r}")

        invoice_date = None
        raw_date = data.get('invoice_date')
        if isinstance(raw_date, date):
            invoice_date = raw_date
        elif raw_date:
            try:
                invoice_date = parse_date(str(raw_date))
            except ValueError:
                invoice_date = None

        invoice_id = data.get('id')
        try:
            invoice_id = int(invoice_id) if invoice_id not in (None, '') else None
        except (TypeError, ValueError):
            invoice_id = None

        draft = cls(
            settings=settings,
            job=job,
            invoice_id=invoice_id,
            invoice_date=invoice_date,
            work_performed=str(data.get('work_performed') or ''),
            payment_method=str(data.get('payment_method') or 'cash'),
            resolver=resolver,
        )

        for item in data.get('labor_entries') or []:
            if not isinstance(item, dict):
                continue
            draft.labor.append(LaborLine(
                description=str(item.get('description') or ''),
                hours=_to_hours(item.get('hours')),
                rate=_to_hours(item.get('rate')),
            ))

        for item in data.get('part_entries') or []:
            if not isinstance(item, dict):
                continue
            line = PartLine(
                part_id=_to_part_id(item.get('part_id')),
                quantity=_to_quantity(item.get('quantity')),
                markup_percent=ensure_decimal(item.get('markup_percent'), ensure_decimal(settings.default_parts_markup)),
                pricing=item.get('pricing') if item.get('pricing') in (PRICING_AUTO, PRICING_OVERRIDE) else PRICING_AUTO,
            )
            if item.get('unit_cost') not in (None, ''):
                line.unit_cost = ensure_decimal(item.get('unit_cost'))
            if item.get('final_price') in (None, ''):
                apply_auto_price(line, draft.resolver)
            else:
                line.final_price = quantize_money(item.get('final_price'))
            draft.parts.append(line)

        for item in data.get('misc_fees') or []:
            if not isinstance(item, dict):
                continue
            draft.misc_fees.append(MiscFee(
                description=str(item.get('description') or ''),
                amount=ensure_decimal(item.get('amount')),
            ))

        draft.recompute()
        return draft

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def compute(self) -> InvoiceTotals:
        return compute_totals(self.labor, self.parts, self.misc_fees, self.payment_method, self.settings)

    def recompute(self) -> bool:
        """Refresh derived totals; returns True only if anything changed."""
        totals = self.compute()
        if totals == self.totals and self.grand_total == totals.grand_total:
            return False
        self.totals = totals
        self.grand_total = totals.grand_total
        return True

    # ------------------------------------------------------------------
    # Labor
    # ------------------------------------------------------------------

    def default_labor_rate(self) -> Decimal:
        if self.job is not None and self.job.service_type == 'road':
            return ensure_decimal(self.settings.road_labor_rate)
        return ensure_decimal(self.settings.shop_labor_rate)

    def add_labor(self, description='', hours=None, rate=None) -> LaborLine:
        rate = self.default_labor_rate() if rate is None else rate
        line = LaborLine(description=description, hours=_to_hours(hours), rate=_to_hours(rate))
        self.labor.append(line)
        self.recompute()
        return line

    def update_labor(self, index: int, description=None, hours=None, rate=None) -> LaborLine:
        line = self.labor[index]
        if description is not None:
            line.description = description
        if hours is not None:
            line.hours = _to_hours(hours)
        if rate is not None:
            line.rate = _to_hours(rate)
        self.recompute()
        return line

    def remove_labor(self, index: int) -> None:
        del self.labor[index]
        self.recompute()

    # ------------------------------------------------------------------
    # Parts
    # ------------------------------------------------------------------

    def add_part(self, part_id=None, quantity=1, markup_percent=None) -> PartLine:
        """Add a part line; with a catalog part it is priced immediately."""
        if markup_percent is None:
            markup_percent = self.settings.default_parts_markup
        line = PartLine(
            part_id=_to_part_id(part_id),
            quantity=_to_quantity(quantity),
            markup_percent=ensure_decimal(markup_percent),
        )
        apply_auto_price(line, self.resolver)
        self.parts.append(line)
        self.recompute()
        return line

    def update_part(self, index: int, part_id=None, quantity=None, markup_percent=None, final_price=None) -> PartLine:
        """
        Edit a part line.

        Changing the part, quantity or markup re-prices the line from the
        catalog, replacing any manual price. A `final_price` passed in the same
        call is applied after re-pricing and marks the line as manually
        overridden.
        """
        line = self.parts[index]
        reprice = False
        if part_id is not None:
            line.part_id = _to_part_id(part_id)
            line.unit_cost = None
            reprice = True
        if quantity is not None:
            line.quantity = _to_quantity(quantity)
            reprice = True
        if markup_percent is not None:
            line.markup_percent = ensure_decimal(markup_percent)
            reprice = True

        if reprice:
            apply_auto_price(line, self.resolver)
        if final_price is not None:
            line.final_price = quantize_money(final_price)
            line.pricing = PRICING_OVERRIDE

        self.recompute()
        return line

    def remove_part(self, index: int) -> None:
        del self.parts[index]
        self.recompute()

    # ------------------------------------------------------------------
    # Fees and payment method
    # ------------------------------------------------------------------

    def add_fee(self, description='', amount=None) -> MiscFee:
        fee = MiscFee(description=description, amount=ensure_decimal(amount))
        self.misc_fees.append(fee)
        self.recompute()
        return fee

    def update_fee(self, index: int, description=None, amount=None) -> MiscFee:
        fee = self.misc_fees[index]
        if description is not None:
            fee.description = description
        if amount is not None:
            fee.amount = ensure_decimal(amount)
        self.recompute()
        return fee

    def remove_fee(self, index: int) -> None:
        del self.misc_fees[index]
        self.recompute()

    def add_standard_fees(self) -> List[MiscFee]:
        """
        Append the shop's standard fees: shop supplies (a percent of the
        current subtotal, frozen as a flat amount) and the disposal fee.
        Zero-valued fees are skipped.
        """
        added = []
        supplies = quantize_money(percent_of(self.totals.subtotal, self.settings.shop_supply_fee_percent))
        if supplies:
            added.append(MiscFee(description='Shop supplies', amount=supplies))
        disposal = quantize_money(self.settings.disposal_fee)
        if disposal:
            added.append(MiscFee(description='Disposal fee', amount=disposal))
        if added:
            self.misc_fees.extend(added)
            self.recompute()
        return added

    def set_payment_method(self, payment_method: str) -> None:
        self.payment_method = payment_method
        self.recompute()

    def as_dict(self) -> Dict[str, Any]:
        return {
            'id': self.invoice_id,
            'job_id': self.job.pk if self.job is not None else None,
            'invoice_date': self.invoice_date.isoformat() if self.invoice_date else None,
            'work_performed': self.work_performed,
            'payment_method': self.payment_method,
            'status': self.status,
            'labor_entries': [line.as_dict() for line in self.labor],
            'part_entries': [line.as_dict() for line in self.parts],
            'misc_fees': [fee.as_dict() for fee in self.misc_fees],
            'totals': self.totals.as_dict(),
        }
