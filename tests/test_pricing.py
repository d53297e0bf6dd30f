"""Tests for the pricing functions"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import permutations

from cart_engine.models import Cart, CartItem, Coupon, CouponKind
from cart_engine.pricing import (
    compute_discount,
    compute_subtotal,
    compute_tax,
    compute_total,
    compute_totals,
    reprice,
)


def percent(value, **kwargs) -> Coupon:
    return Coupon(code="PCT", kind=CouponKind.PERCENTAGE, value=value, **kwargs)


def fixed(value, **kwargs) -> Coupon:
    return Coupon(code="FIX", kind=CouponKind.FIXED_AMOUNT, value=value, **kwargs)


class TestSubtotal:
    def test_empty(self):
        assert compute_subtotal([]) == Decimal("0")

    def test_sum_of_lines(self, make_item):
        items = [make_item("A", "10.00", quantity=2), make_item("B", "2.50", quantity=3)]
        assert compute_subtotal(items) == Decimal("27.50")


class TestTax:
    def test_flat_rate(self):
        assert compute_tax(Decimal("20.00"), Decimal("0.10")) == Decimal("2.00")

    def test_rounds_half_to_even(self):
        assert compute_tax(Decimal("0.25"), Decimal("0.10")) == Decimal("0.02")
        assert compute_tax(Decimal("0.35"), Decimal("0.10")) == Decimal("0.04")

    def test_float_rate(self):
        assert compute_tax(Decimal("19.99"), 0.1) == Decimal("2.00")

    def test_zero_rate(self):
        assert compute_tax(Decimal("99.99"), 0) == Decimal("0.00")


class TestDiscount:
    def test_no_coupon(self):
        assert compute_discount(Decimal("50"), None) == Decimal("0")

    def test_percentage(self):
        assert compute_discount(Decimal("20.00"), percent(10)) == Decimal("2.00")

    def test_fixed_is_capped_at_subtotal(self):
        assert compute_discount(Decimal("30.00"), fixed(50)) == Decimal("30.00")

    def test_max_discount(self):
        coupon = percent(25, max_discount=Decimal("75"))
        assert compute_discount(Decimal("400.00"), coupon) == Decimal("75")

    def test_ineligible_gives_nothing(self):
        coupon = fixed(20, min_subtotal=Decimal("100"))
        assert compute_discount(Decimal("99.99"), coupon) == Decimal("0")

    def test_expired_gives_nothing(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        coupon = percent(10, expires_at=now - timedelta(seconds=1))
        assert compute_discount(Decimal("50"), coupon, at=now) == Decimal("0")

    def test_hundred_percent(self):
        assert compute_discount(Decimal("12.34"), percent(100)) == Decimal("12.34")


class TestTotal:
    def test_total(self):
        assert compute_total(Decimal("20"), Decimal("2"), Decimal("5"), Decimal("3")) == Decimal("24")

    def test_never_negative(self):
        assert compute_total(Decimal("10"), Decimal("0"), Decimal("0"), Decimal("15")) == Decimal("0")


class TestComputeTotals:
    def test_breakdown(self, make_item):
        cart = Cart(
            items=[make_item("A", "10.00", quantity=2)],
            applied_coupon=percent(10),
            shipping_amount=Decimal("4.99"),
        )
        totals = compute_totals(cart, tax_rate=Decimal("0.10"))
        assert totals.subtotal == Decimal("20.00")
        assert totals.tax_amount == Decimal("2.00")
        assert totals.discount_amount == Decimal("2.00")
        assert totals.shipping_amount == Decimal("4.99")
        assert totals.grand_total == Decimal("24.99")

    def test_line_order_does_not_matter(self, make_item):
        items = [
            make_item("A", "19.99", quantity=3),
            make_item("B", "0.35", quantity=1),
            make_item("C", "7.05", quantity=2, variant={"size": "S"}),
        ]
        results = {
            compute_totals(Cart(items=list(order), applied_coupon=percent(15)), tax_rate="0.0825")
            for order in permutations(items)
        }
        assert len(results) == 1


class TestReprice:
    def test_detaches_ineligible_coupon(self, make_item):
        cart = Cart(
            items=[make_item("A", "50.00")],
            applied_coupon=fixed(20, min_subtotal=Decimal("100")),
        )
        priced, detached = reprice(cart, tax_rate=0)
        assert detached
        assert priced.applied_coupon is None
        assert priced.discount_amount == Decimal("0")
        assert cart.applied_coupon is not None

    def test_detaches_coupon_from_empty_cart(self):
        priced, detached = reprice(Cart(applied_coupon=percent(10)), tax_rate=0)
        assert detached
        assert priced.applied_coupon is None

    def test_keeps_eligible_coupon(self, make_item):
        cart = Cart(items=[make_item("A", "10.00", quantity=2)], applied_coupon=percent(10))
        priced, detached = reprice(cart, tax_rate=0)
        assert not detached
        assert priced.grand_total == Decimal("18.00")
