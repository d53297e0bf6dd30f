"""
Cart Service Application

Reference implementation of the remote cart service: per-account carts,
plus the catalog and promotions lookups the cart engine consults.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from cart_engine.config import settings
from .config import service_settings
from .middleware import ShopperIdentityMiddleware
from .routes import cart_router, coupons_router, products_router

# Load environment variables
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if service_settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Cart Service starting up...")
    logger.info(f"Tax rate: {settings.tax_rate}, currency: {settings.currency}")
    yield
    logger.info("Cart Service shutting down...")


# Create FastAPI app
app = FastAPI(
    title=service_settings.app_name,
    description="Account cart storage with catalog and promotions lookups",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shopper identity from bearer tokens
app.add_middleware(ShopperIdentityMiddleware)

# Include API routers
app.include_router(cart_router)
app.include_router(coupons_router)
app.include_router(products_router)


@app.get("/")
async def home():
    """Service index"""
    return {
        "message": "Cart Service API",
        "docs": "/docs",
        "endpoints": {
            "cart": "/api/cart",
            "coupons": "/api/coupons/{code}",
            "products": "/api/products/{product_id}",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "cart-service"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cart_service.main:app",
        host=service_settings.host,
        port=service_settings.port,
        reload=service_settings.debug,
    )
