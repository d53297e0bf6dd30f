"""API models for the cart service"""

from pydantic import BaseModel
from typing import Optional

from cart_engine.models import Cart


class CartResponse(BaseModel):
    """Cart API response"""
    cart: Cart
    message: Optional[str] = None
