# Database modules

from .products import product_db, ProductDatabase
from .coupons import coupon_db, CouponDatabase
from .carts import cart_db, CartDatabase

__all__ = [
    "product_db",
    "ProductDatabase",
    "coupon_db",
    "CouponDatabase",
    "cart_db",
    "CartDatabase",
]
