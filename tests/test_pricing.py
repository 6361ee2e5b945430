from decimal import Decimal

import pytest

from delivery_api.errors import InvalidQuantity
from delivery_api.services.pricing import PricingLine, price_lines


def test_subtotal_and_total_from_snapshots():
    quote = price_lines(
        [PricingLine("burger", 2, Decimal("15.00")), PricingLine("soda", 1, Decimal("5.00"))],
        Decimal("8.50"),
    )
    assert quote.subtotal == Decimal("35.00")
    assert quote.delivery_fee == Decimal("8.50")
    assert quote.total == Decimal("43.50")
    assert [l.line_total for l in quote.lines] == [Decimal("30.00"), Decimal("5.00")]


def test_line_order_is_preserved():
    lines = [PricingLine(pid, 1, Decimal("1.00")) for pid in ("c", "a", "b")]
    assert [l.product_id for l in price_lines(lines, 0).lines] == ["c", "a", "b"]


@pytest.mark.parametrize("qty", [0, -1, 1.5, True, None])
def test_rejects_non_positive_or_non_integer_quantities(qty):
    with pytest.raises(InvalidQuantity):
        price_lines([PricingLine("x", qty, Decimal("2.00"))], Decimal("1.00"))


def test_with_discount_reduces_total_and_clamps_to_subtotal():
    quote = price_lines([PricingLine("x", 1, Decimal("20.00"))], Decimal("5.00"))

    discounted = quote.with_discount(Decimal("4.00"))
    assert discounted.discount == Decimal("4.00")
    assert discounted.total == Decimal("21.00")

    clamped = quote.with_discount(Decimal("50.00"))
    assert clamped.discount == Decimal("20.00")
    assert clamped.total == Decimal("5.00")
    # original quote untouched
    assert quote.total == Decimal("25.00")


def test_rounds_half_up_to_cents():
    quote = price_lines([PricingLine("x", 3, Decimal("3.335"))], "0")
    assert quote.subtotal == Decimal("10.01")
