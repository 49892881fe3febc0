"""Currency conversion utilities.

Internal storage unit: paise (smallest INR unit, 100 paise = ₹1).
Catalog / display unit: rupees (float, e.g. 1499.0 = ₹1,499).

Gateway APIs take and return integer paise; catalog records carry rupee
prices. Conversion happens once, at order creation.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

PAISE_PER_RUPEE: int = 100


def rupees_to_paise(rupees: float) -> int:
    """Convert rupees to paise, rounding half-up to the nearest integer."""
    value = Decimal(str(rupees)) * PAISE_PER_RUPEE
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def paise_to_rupees(paise: int) -> float:
    """Convert paise to rupees. 100 paise = ₹1."""
    return paise / PAISE_PER_RUPEE


def format_paise(paise: int | None, currency: str = "INR") -> str:
    """Render a minor-unit amount for humans, e.g. 150000 -> '₹1,500.00'."""
    rupees = paise_to_rupees(int(paise or 0))
    if currency == "INR":
        return f"₹{rupees:,.2f}"
    return f"{currency} {rupees:,.2f}"
