"""Cart API routes for the cart service"""

import logging
from fastapi import APIRouter, Depends

from cart_engine.models import Cart
from ..database.carts import cart_db
from ..middleware import require_shopper
from ..models import CartResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("", response_model=CartResponse)
async def get_cart(user_id: str = Depends(require_shopper)):
    """Get the shopper's cart"""
    return CartResponse(cart=cart_db.get_cart(user_id))


@router.put("", response_model=CartResponse)
async def save_cart(cart: Cart, user_id: str = Depends(require_shopper)):
    """Replace the shopper's cart with a full snapshot"""
    saved = cart_db.save_cart(user_id, cart)
    logger.info(f"Saved cart for user {user_id}: {len(saved.items)} lines, revision {saved.revision}")
    return CartResponse(cart=saved, message="Cart saved")


@router.delete("", response_model=CartResponse)
async def delete_cart(user_id: str = Depends(require_shopper)):
    """Drop the shopper's cart"""
    cart_db.delete_cart(user_id)
    return CartResponse(cart=Cart(), message="Cart cleared")
