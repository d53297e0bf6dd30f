"""Catalog/stock lookup for the cart service"""

from decimal import Decimal
from typing import Optional

from cart_engine.models import CatalogProduct

# Reference catalog
PRODUCTS: dict[str, CatalogProduct] = {
    "prod-001": CatalogProduct(
        id="prod-001",
        name="Classic Denim Jacket",
        price=Decimal("89.99"),
        stock_quantity=25,
        image_url="/static/images/denim-jacket.jpg",
    ),
    "prod-002": CatalogProduct(
        id="prod-002",
        name="Linen Summer Shirt",
        price=Decimal("45.00"),
        stock_quantity=60,
        image_url="/static/images/linen-shirt.jpg",
    ),
    "prod-003": CatalogProduct(
        id="prod-003",
        name="Leather Chelsea Boots",
        price=Decimal("159.50"),
        stock_quantity=8,
        image_url="/static/images/chelsea-boots.jpg",
    ),
    "prod-004": CatalogProduct(
        id="prod-004",
        name="Wool Beanie",
        price=Decimal("19.99"),
        stock_quantity=3,
        image_url="/static/images/wool-beanie.jpg",
    ),
    "prod-005": CatalogProduct(
        id="prod-005",
        name="Silk Scarf",
        price=Decimal("34.00"),
        stock_quantity=0,
        image_url="/static/images/silk-scarf.jpg",
    ),
}


class ProductDatabase:
    """In-memory catalog"""

    def __init__(self):
        self.products: dict[str, CatalogProduct] = {
            product_id: product.model_copy() for product_id, product in PRODUCTS.items()
        }

    def get_product(self, product_id: str) -> Optional[CatalogProduct]:
        """Get a product by ID"""
        return self.products.get(product_id)

    def update_stock(self, product_id: str, quantity_change: int) -> bool:
        """
        Update product stock.

        Args:
            product_id: Product to update
            quantity_change: Positive to add, negative to remove

        Returns:
            True if successful
        """
        product = self.products.get(product_id)
        if not product:
            return False

        new_quantity = product.stock_quantity + quantity_change
        if new_quantity < 0:
            return False

        product.stock_quantity = new_quantity
        return True

    def update_price(self, product_id: str, price: Decimal) -> bool:
        """Reprice a product; lines already in carts keep their old price"""
        product = self.products.get(product_id)
        if not product or price < 0:
            return False
        product.price = price
        return True

    def reset(self) -> None:
        self.products = {
            product_id: product.model_copy() for product_id, product in PRODUCTS.items()
        }


# Singleton instance
product_db = ProductDatabase()
