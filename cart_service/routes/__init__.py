# API Routes

from .cart import router as cart_router
from .coupons import router as coupons_router
from .products import router as products_router

__all__ = ["cart_router", "coupons_router", "products_router"]
