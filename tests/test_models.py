"""Tests for cart, line item and coupon models"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from cart_engine.models import Cart, CartItem, CartState, CatalogProduct, Coupon, CouponKind, CouponState


class TestCoupon:
    def test_code_is_normalized(self):
        coupon = Coupon(code="  welcome10 ", kind=CouponKind.PERCENTAGE, value=10)
        assert coupon.code == "WELCOME10"

    def test_blank_code_rejected(self):
        with pytest.raises(ValidationError):
            Coupon(code="   ", kind=CouponKind.FIXED_AMOUNT, value=5)

    def test_percentage_over_100_rejected(self):
        with pytest.raises(ValidationError):
            Coupon(code="TOOMUCH", kind=CouponKind.PERCENTAGE, value=150)

    def test_negative_value_rejected(self):
        with pytest.raises(ValidationError):
            Coupon(code="NEG", kind=CouponKind.FIXED_AMOUNT, value=-1)

    def test_reads_camel_case(self):
        coupon = Coupon.model_validate({
            "code": "SAVE20",
            "kind": "fixedAmount",
            "value": "20",
            "minSubtotal": "100",
        })
        assert coupon.kind == CouponKind.FIXED_AMOUNT
        assert coupon.min_subtotal == Decimal("100")

    def test_minimum_subtotal(self):
        coupon = Coupon(code="SAVE20", kind=CouponKind.FIXED_AMOUNT, value=20, min_subtotal=100)
        assert not coupon.is_eligible(Decimal("99.99"))
        assert coupon.is_eligible(Decimal("100"))
        assert "minimum subtotal" in coupon.ineligibility_reason(Decimal("50"))

    def test_validity_window(self):
        now = datetime(2026, 6, 1, tzinfo=timezone.utc)
        expired = Coupon(
            code="OLD", kind=CouponKind.PERCENTAGE, value=10,
            expires_at=now - timedelta(days=1),
        )
        upcoming = Coupon(
            code="SOON", kind=CouponKind.PERCENTAGE, value=10,
            starts_at=now + timedelta(days=1),
        )
        assert expired.ineligibility_reason(Decimal("50"), now) == "This coupon has expired"
        assert upcoming.ineligibility_reason(Decimal("50"), now) == "This coupon is not yet active"

    def test_naive_dates_are_utc(self):
        coupon = Coupon(code="NAIVE", kind=CouponKind.PERCENTAGE, value=5, expires_at=datetime(2030, 1, 1))
        assert coupon.expires_at.tzinfo is not None

    def test_inactive(self):
        coupon = Coupon(code="OFF", kind=CouponKind.FIXED_AMOUNT, value=5, is_active=False)
        assert coupon.ineligibility_reason(Decimal("50")) == "This coupon is no longer active"


class TestCartItem:
    def test_identity_ignores_variant_order(self):
        a = CartItem(product_id="A", name="Tee", unit_price=10, variant={"size": "M", "color": "red"})
        b = CartItem(product_id="A", name="Tee", unit_price=10, variant={"color": "red", "size": "M"})
        assert a.same_line(b)
        assert a.matches("A", {"color": "red", "size": "M"})

    def test_different_variants_are_different_lines(self):
        a = CartItem(product_id="A", name="Tee", unit_price=10, variant={"size": "M"})
        b = CartItem(product_id="A", name="Tee", unit_price=10, variant={"size": "L"})
        assert not a.same_line(b)

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            CartItem(product_id="A", name="Tee", unit_price=10, quantity=0)

    def test_empty_product_id_rejected(self):
        with pytest.raises(ValidationError):
            CartItem(product_id="", name="Tee", unit_price=10)

    def test_line_total(self):
        item = CartItem(product_id="A", name="Tee", unit_price=Decimal("19.99"), quantity=3)
        assert item.line_total == Decimal("59.97")

    def test_availability(self):
        assert CartItem(product_id="A", name="Tee", unit_price=1, quantity=2, available_stock=2).is_available
        assert not CartItem(product_id="A", name="Tee", unit_price=1, available_stock=0).is_available


class TestCart:
    def test_empty_cart(self):
        cart = Cart()
        assert cart.state == CartState.EMPTY
        assert cart.coupon_state == CouponState.NONE
        assert cart.grand_total == Decimal("0")

    def test_duplicate_lines_rejected(self):
        line = CartItem(product_id="A", name="Tee", unit_price=10, variant={"size": "M"})
        with pytest.raises(ValidationError):
            Cart(items=[line, line.model_copy()])

    def test_negative_totals_rejected(self):
        with pytest.raises(ValidationError):
            Cart(grand_total=Decimal("-1"))

    def test_wire_format_is_camel_case(self):
        cart = Cart(items=[CartItem(product_id="A", name="Tee", unit_price=10, available_stock=5)])
        data = cart.model_dump(mode="json", by_alias=True)
        assert "grandTotal" in data
        assert "appliedCoupon" in data
        assert data["items"][0]["productId"] == "A"
        assert data["items"][0]["availableStock"] == 5

    def test_find_line(self):
        cart = Cart(items=[
            CartItem(product_id="A", name="Tee", unit_price=10),
            CartItem(product_id="B", name="Cap", unit_price=5, variant={"size": "L"}),
        ])
        assert cart.find_line("B", {"size": "L"}) == 1
        assert cart.find_line("B") is None
        assert cart.item_count == 2


class TestCatalogProduct:
    def test_to_cart_item_snapshots_price_and_stock(self):
        product = CatalogProduct(id="prod-001", name="Jacket", price=Decimal("89.99"), stock_quantity=25)
        item = product.to_cart_item(quantity=2, variant={"size": "M"})
        assert item.unit_price == Decimal("89.99")
        assert item.available_stock == 25
        assert item.quantity == 2
        assert item.variant == {"size": "M"}
