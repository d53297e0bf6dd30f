"""Promotions lookup for the cart service"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from cart_engine.models import Coupon, CouponKind

COUPONS: dict[str, Coupon] = {
    "WELCOME10": Coupon(
        code="WELCOME10",
        kind=CouponKind.PERCENTAGE,
        value=Decimal("10"),
        min_subtotal=Decimal("0"),
        description="10% off your order",
    ),
    "SAVE20": Coupon(
        code="SAVE20",
        kind=CouponKind.FIXED_AMOUNT,
        value=Decimal("20"),
        min_subtotal=Decimal("100"),
        description="20 off orders of 100 or more",
    ),
    "BIGSPENDER": Coupon(
        code="BIGSPENDER",
        kind=CouponKind.PERCENTAGE,
        value=Decimal("25"),
        min_subtotal=Decimal("200"),
        max_discount=Decimal("75"),
        description="25% off orders of 200 or more, up to 75",
    ),
    "SUMMER2020": Coupon(
        code="SUMMER2020",
        kind=CouponKind.PERCENTAGE,
        value=Decimal("15"),
        expires_at=datetime(2020, 9, 1, tzinfo=timezone.utc),
        description="Summer sale",
    ),
    "RETIRED5": Coupon(
        code="RETIRED5",
        kind=CouponKind.FIXED_AMOUNT,
        value=Decimal("5"),
        is_active=False,
        description="Withdrawn promotion",
    ),
}


class CouponDatabase:
    """In-memory promotions"""

    def __init__(self):
        self.coupons: dict[str, Coupon] = dict(COUPONS)

    def get_coupon(self, code: str) -> Optional[Coupon]:
        """Get a coupon by code, case-insensitively"""
        return self.coupons.get(code.strip().upper())

    def add_coupon(self, coupon: Coupon) -> Coupon:
        self.coupons[coupon.code] = coupon
        return coupon

    def reset(self) -> None:
        self.coupons = dict(COUPONS)


# Singleton instance
coupon_db = CouponDatabase()
