"""Per-account cart storage for the cart service"""

import logging
from decimal import Decimal
from typing import Optional

from cart_engine import pricing
from cart_engine.models import Cart

logger = logging.getLogger(__name__)


class CartDatabase:
    """In-memory cart storage keyed by user"""

    def __init__(self, tax_rate: Optional[Decimal] = None):
        self.carts: dict[str, Cart] = {}
        self.tax_rate = tax_rate

    def get_cart(self, user_id: str) -> Cart:
        """Get a user's cart; users without one get an empty cart"""
        cart = self.carts.get(user_id)
        if cart is None:
            return Cart()
        return cart.model_copy(deep=True)

    def save_cart(self, user_id: str, cart: Cart) -> Cart:
        """Store a full snapshot, recomputing its totals"""
        priced, detached = pricing.reprice(cart, self.tax_rate)
        if detached:
            logger.info(f"Dropped coupon no longer valid for user {user_id}")
        self.carts[user_id] = priced
        logger.debug(f"Stored cart revision {priced.revision} for user {user_id}")
        return priced.model_copy(deep=True)

    def delete_cart(self, user_id: str) -> bool:
        """Delete a user's cart"""
        if user_id in self.carts:
            del self.carts[user_id]
            return True
        return False

    def reset(self) -> None:
        self.carts.clear()


# Singleton instance
cart_db = CartDatabase()
