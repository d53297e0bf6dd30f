"""Promotions API routes for the cart service"""

from fastapi import APIRouter, HTTPException

from cart_engine.models import Coupon
from ..database.coupons import coupon_db

router = APIRouter(prefix="/api/coupons", tags=["Coupons"])


@router.get("/{code}", response_model=Coupon)
async def get_coupon(code: str):
    """Get a coupon definition by code"""
    coupon = coupon_db.get_coupon(code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Invalid coupon code")
    return coupon
