"""Operation outcomes reported by the cart engine"""

from dataclasses import dataclass, field
from typing import Optional
from enum import Enum

from .models import Cart


class CartCondition(str, Enum):
    """Recoverable conditions signalled to the caller"""
    QUANTITY_EXCEEDS_STOCK = "QuantityExceedsStock"
    QUANTITY_CLAMPED = "QuantityClamped"
    COUPON_INELIGIBLE = "CouponIneligible"
    COUPON_DETACHED = "CouponDetached"
    PERSISTENCE_WRITE_FAILED = "PersistenceWriteFailed"
    REMOTE_SYNC_FAILED = "RemoteSyncFailed"
    CORRUPT_SNAPSHOT = "CorruptSnapshot"
    LINE_NOT_FOUND = "LineNotFound"
    INVALID_QUANTITY = "InvalidQuantity"
    INVALID_AMOUNT = "InvalidAmount"
    ITEM_UNAVAILABLE = "ItemUnavailable"


# Conditions that mean the operation was refused and state is unchanged
REJECTIONS = frozenset({
    CartCondition.QUANTITY_EXCEEDS_STOCK,
    CartCondition.COUPON_INELIGIBLE,
    CartCondition.LINE_NOT_FOUND,
    CartCondition.INVALID_QUANTITY,
    CartCondition.INVALID_AMOUNT,
    CartCondition.ITEM_UNAVAILABLE,
})


@dataclass
class CartResult:
    """Result of a cart store operation"""
    accepted: bool
    cart: Cart
    conditions: list[CartCondition] = field(default_factory=list)
    message: Optional[str] = None

    def has(self, condition: CartCondition) -> bool:
        return condition in self.conditions

    @property
    def rejected(self) -> bool:
        return not self.accepted

    @property
    def clamped(self) -> bool:
        return self.has(CartCondition.QUANTITY_CLAMPED)


@dataclass
class MergeResult:
    """Result of merging a guest cart into an account cart"""
    cart: Cart
    conditions: list[CartCondition] = field(default_factory=list)
    merged_lines: int = 0
    appended_lines: int = 0


class ReconcileSource(str, Enum):
    """Where the authoritative cart came from after a session transition"""
    MERGED = "merged"
    LOCAL_FALLBACK = "local_fallback"
    LOCAL_SNAPSHOT = "local_snapshot"
    EMPTY = "empty"


@dataclass
class ReconcileResult:
    """Result of a login or logout reconciliation"""
    accepted: bool
    cart: Cart
    source: Optional[ReconcileSource] = None
    conditions: list[CartCondition] = field(default_factory=list)
    message: Optional[str] = None

    def has(self, condition: CartCondition) -> bool:
        return condition in self.conditions
