"""Fixed-point decimal utilities for USDP / PV amounts.

All settlement math uses decimal.Decimal, never float.
  USDP amounts:   2 decimal places  (NUMERIC(20, 2))
  PV quantities:  6 decimal places  (NUMERIC(24, 6))
  Average prices: 8 decimal places  (NUMERIC(30, 8))
Curve prices are computed exactly from quantized supply (NUMERIC(38, 14)).
"""

from decimal import ROUND_DOWN, Context, Decimal, InvalidOperation

USDP_QUANTUM = Decimal("0.01")
PV_QUANTUM = Decimal("0.000001")
AVG_PRICE_QUANTUM = Decimal("0.00000001")

# Enough headroom for sqrt(price^2 + 2 * step * usdp) on NUMERIC(38, 14) inputs
CURVE_CONTEXT = Context(prec=50)

ZERO = Decimal(0)

# Largest values the NUMERIC(20, 2) and NUMERIC(24, 6) columns accept
MAX_USDP = Decimal("999999999999999999.99")
MAX_PV = Decimal("999999999999999999.999999")


def to_decimal(value: object) -> Decimal:
    """Coerce str/int/Decimal to Decimal. Floats are rejected outright."""
    if isinstance(value, float):
        raise TypeError("float amounts are not allowed; pass str or Decimal")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def floor_usdp(amount: Decimal) -> Decimal:
    """Truncate a USDP amount to 2dp (rounding always favours the curve)."""
    return amount.quantize(USDP_QUANTUM, rounding=ROUND_DOWN)


def floor_pv(quantity: Decimal) -> Decimal:
    """Truncate a PV quantity to 6dp."""
    return quantity.quantize(PV_QUANTUM, rounding=ROUND_DOWN)


def floor_avg_price(price: Decimal) -> Decimal:
    return price.quantize(AVG_PRICE_QUANTUM, rounding=ROUND_DOWN)


def is_usdp_precision(amount: Decimal) -> bool:
    """True if the amount has no more than 2 decimal places."""
    try:
        return amount == amount.quantize(USDP_QUANTUM, rounding=ROUND_DOWN)
    except InvalidOperation:
        # Too many digits to quantize, so certainly not a storable amount
        return False


def is_pv_precision(quantity: Decimal) -> bool:
    try:
        return quantity == quantity.quantize(PV_QUANTUM, rounding=ROUND_DOWN)
    except InvalidOperation:
        return False


def usdp_to_display(amount: Decimal) -> str:
    """Convert USDP to display string: 6500 -> '$6,500.00', -12 -> '-$12.00'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${floor_usdp(abs(amount)):,.2f}"
