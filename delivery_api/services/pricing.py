# delivery_api/services/pricing.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from ..errors import InvalidQuantity
from ..utils.money import D, round_money, Money, ZERO


@dataclass(frozen=True)
class PricingLine:
    product_id: object
    quantity: int
    unit_price: Money

    @property
    def line_total(self) -> Money:
        return round_money(D(self.unit_price) * self.quantity)


@dataclass(frozen=True)
class PriceQuote:
    lines: tuple = field(default_factory=tuple)
    subtotal: Money = ZERO
    delivery_fee: Money = ZERO
    discount: Money = ZERO
    total: Money = ZERO

    def with_discount(self, discount) -> "PriceQuote":
        """Same quote with ``discount`` taken off the subtotal (clamped to [0, subtotal])."""
        d = max(ZERO, min(round_money(discount), self.subtotal))
        return replace(self, discount=d, total=round_money(self.subtotal - d + self.delivery_fee))


def _check_quantity(line: PricingLine):
    q = line.quantity
    if isinstance(q, bool) or not isinstance(q, int) or q <= 0:
        raise InvalidQuantity(line.product_id, q)


def price_lines(lines, delivery_fee) -> PriceQuote:
    """
    subtotal = sum(unit_price * quantity); total = subtotal + delivery_fee.
    Pure: no storage access. Rejects non-positive quantities.
    """
    lines = tuple(lines)
    for line in lines:
        _check_quantity(line)
    subtotal = round_money(sum((l.line_total for l in lines), ZERO))
    fee = round_money(delivery_fee)
    return PriceQuote(
        lines=lines,
        subtotal=subtotal,
        delivery_fee=fee,
        discount=ZERO,
        total=round_money(subtotal + fee),
    )
