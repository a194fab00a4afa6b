from .totals import InvoiceTotals, compute_totals, is_card_payment
from .pricing import apply_auto_price, calculate_final_price, resolve_unit_cost, PRICING_AUTO, PRICING_OVERRIDE
from .drafts import InvoiceDraft, LaborLine, PartLine, MiscFee
from .invoice_service import InvoiceService, validate_draft
