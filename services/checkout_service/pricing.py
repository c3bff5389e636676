from decimal import ROUND_HALF_UP, Decimal

from .schemas import CartItem

# Currencies Stripe charges in whole units
ZERO_DECIMAL_CURRENCIES = frozenset({"jpy", "krw", "clp", "vnd", "xaf", "xof"})


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def effective_discount(item: CartItem) -> float:
    """Product discount takes precedence over the active event discount."""
    product_discount = item.product.discount_percentage or 0
    if product_discount > 0:
        return product_discount

    event_discount = (item.active_event.discount_percentage or 0) if item.active_event else 0
    if event_discount > 0:
        return event_discount

    return 0


def calculate_unit_price(item: CartItem) -> float:
    base_price = item.product.price
    discount = effective_discount(item)
    if discount > 0:
        factor = 1 - Decimal(str(discount)) / 100
        return _round_half_up(Decimal(str(base_price)) * factor)
    return base_price


def to_smallest_unit(amount: float, currency: str) -> int:
    """Converts a major-unit amount into the processor's minor unit (öre, cents...)."""
    value = Decimal(str(amount))
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return _round_half_up(value)
    return _round_half_up(value * 100)
