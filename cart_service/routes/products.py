"""Catalog API routes for the cart service"""

from fastapi import APIRouter, HTTPException

from cart_engine.models import CatalogProduct
from ..database.products import product_db

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("/{product_id}", response_model=CatalogProduct)
async def get_product(product_id: str):
    """Get current price and stock for a product"""
    product = product_db.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
