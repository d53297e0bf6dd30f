# Storefront cart & pricing engine

from .models import Cart, CartItem, CartState, CatalogProduct, Coupon, CouponKind, CouponState
from .results import CartCondition, CartResult, MergeResult, ReconcileResult, ReconcileSource
from .persistence import CartPersistence, FileStorage, InMemoryStorage, KeyValueStorage
from .store import CartStore, SessionMode
from .merge import merge_carts
from .client import CartServiceClient, CartServiceError, CartServiceUnavailable, CartServiceAuthError
from .sync import CartSynchronizer
from .reconciler import SessionReconciler

__all__ = [
    "Cart",
    "CartItem",
    "CartState",
    "CatalogProduct",
    "Coupon",
    "CouponKind",
    "CouponState",
    "CartCondition",
    "CartResult",
    "MergeResult",
    "ReconcileResult",
    "ReconcileSource",
    "CartPersistence",
    "FileStorage",
    "InMemoryStorage",
    "KeyValueStorage",
    "CartStore",
    "SessionMode",
    "merge_carts",
    "CartServiceClient",
    "CartServiceError",
    "CartServiceUnavailable",
    "CartServiceAuthError",
    "CartSynchronizer",
    "SessionReconciler",
]
