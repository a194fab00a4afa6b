from .money import ensure_decimal, quantize_money, percent_of, format_money, CENT, ZERO, HUNDRED


def entry_value(entry, field, default=None):
    """Read a field from a line entry that may be a mapping or an object."""
    if entry is None:
        return default
    if isinstance(entry, dict):
        return entry.get(field, default)
    return getattr(entry, field, default)
