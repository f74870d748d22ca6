"""User-facing text helpers shared by both resolvers."""

from decimal import ROUND_HALF_UP, Decimal

CURRENCY_SYMBOLS = {"MYR": "RM", "SGD": "S$", "USD": "$"}

CENT = Decimal("0.01")


def format_money(amount: Decimal, currency: str = "MYR") -> str:
    """Format an amount for display, e.g. RM12.00."""
    code = (currency or "MYR").upper()
    value = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{code} {value:,.2f}"


def sentence(*parts: str) -> str:
    """Join clauses into one sentence with a capital first letter and a full stop."""
    text = ", ".join(p for p in parts if p)
    if not text:
        return ""
    text = text[0].upper() + text[1:]
    return text if text.endswith(".") else text + "."
