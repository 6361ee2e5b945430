# delivery_api/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0.00")
CENT = Decimal("0.01")

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)

def parse_money(v, field: str, *, allow_none: bool = False):
    """Parse a request value into cents-rounded Decimal; ValueError on junk."""
    if v is None or (isinstance(v, str) and v.strip() == ""):
        if allow_none:
            return None
        raise ValueError(f"{field} is required")
    if isinstance(v, bool):
        raise ValueError(f"{field} must be numeric")
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be numeric")
    if not d.is_finite():
        raise ValueError(f"{field} must be numeric")
    return round_money(d)

def parse_bool(v, default=None):
    """Request flag: real booleans pass through, strings like "false"/"0" are False."""
    if v is None or (isinstance(v, str) and v.strip() == ""):
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}

def to_float(x) -> float:
    return float(round_money(x)) if x is not None else None
