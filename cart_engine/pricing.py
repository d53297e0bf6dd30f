"""
Pricing Engine

Pure functions deriving cart totals. Nothing here touches store state,
storage or the network, and no result depends on the order of cart lines.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable, Optional, Union

from .config import settings
from .models import Cart, CartItem, Coupon, CouponKind

ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def as_decimal(value: Number) -> Decimal:
    """Convert without picking up binary float noise"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_minor_unit(amount: Decimal, minor_unit: Optional[Decimal] = None) -> Decimal:
    """Round to the currency's minor unit, half to even"""
    return amount.quantize(minor_unit or settings.minor_unit, rounding=ROUND_HALF_EVEN)


def compute_subtotal(items: Iterable[CartItem]) -> Decimal:
    """Sum of unit price times quantity over all lines"""
    return sum((item.line_total for item in items), ZERO)


def compute_tax(
    subtotal: Decimal,
    tax_rate: Number,
    minor_unit: Optional[Decimal] = None,
) -> Decimal:
    return to_minor_unit(subtotal * as_decimal(tax_rate), minor_unit)


def compute_discount(
    subtotal: Decimal,
    coupon: Optional[Coupon],
    at: Optional[datetime] = None,
    minor_unit: Optional[Decimal] = None,
) -> Decimal:
    """
    Discount granted by a coupon on a subtotal.

    Zero when there is no coupon or it is not eligible. The result never
    exceeds the subtotal, nor the coupon's max_discount when one is set.
    """
    if coupon is None or not coupon.is_eligible(subtotal, at):
        return ZERO

    if coupon.kind == CouponKind.PERCENTAGE:
        discount = subtotal * coupon.value / 100
    else:
        discount = min(coupon.value, subtotal)

    if coupon.max_discount is not None:
        discount = min(discount, coupon.max_discount)

    return to_minor_unit(min(discount, subtotal), minor_unit)


def compute_total(
    subtotal: Decimal,
    tax: Decimal,
    shipping: Decimal,
    discount: Decimal,
) -> Decimal:
    return max(ZERO, subtotal + tax + shipping - discount)


@dataclass(frozen=True)
class PriceBreakdown:
    """Derived totals for one cart"""
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    grand_total: Decimal

    def apply_to(self, cart: Cart) -> Cart:
        """Write the totals onto a cart and return it"""
        cart.subtotal = self.subtotal
        cart.tax_amount = self.tax_amount
        cart.shipping_amount = self.shipping_amount
        cart.discount_amount = self.discount_amount
        cart.grand_total = self.grand_total
        return cart


def compute_totals(
    cart: Cart,
    tax_rate: Optional[Number] = None,
    at: Optional[datetime] = None,
    minor_unit: Optional[Decimal] = None,
) -> PriceBreakdown:
    """Price a cart as it stands, including its applied coupon and shipping"""
    rate = settings.tax_rate if tax_rate is None else tax_rate

    subtotal = compute_subtotal(cart.items)
    tax = compute_tax(subtotal, rate, minor_unit)
    shipping = cart.shipping_amount
    discount = compute_discount(subtotal, cart.applied_coupon, at, minor_unit)

    return PriceBreakdown(
        subtotal=subtotal,
        tax_amount=tax,
        shipping_amount=shipping,
        discount_amount=discount,
        grand_total=compute_total(subtotal, tax, shipping, discount),
    )


def reprice(
    cart: Cart,
    tax_rate: Optional[Number] = None,
    at: Optional[datetime] = None,
) -> tuple[Cart, bool]:
    """
    Return a priced copy of a cart.

    A coupon that no longer applies (ineligible, or nothing left in the
    cart) is detached. The second element tells whether that happened.
    """
    priced = cart.model_copy(deep=True)
    detached = False

    coupon = priced.applied_coupon
    if coupon is not None:
        subtotal = compute_subtotal(priced.items)
        if priced.is_empty or not coupon.is_eligible(subtotal, at):
            priced.applied_coupon = None
            detached = True

    compute_totals(priced, tax_rate, at).apply_to(priced)
    return priced, detached
