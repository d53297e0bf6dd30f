"""
Cart Store

Single owner of the in-memory cart. Every operation works on a private
draft and commits only when it succeeds, then reprices the cart and either
snapshots it locally (guest) or hands it to the synchronizer for
write-through (authenticated). Signed-in changes are also snapshotted until
the account cart has caught up with them.
"""

import logging
from datetime import datetime
from decimal import InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from . import pricing
from .config import settings
from .models import Cart, CartItem, CartState, Coupon, CouponState, utcnow
from .persistence import CartPersistence
from .results import CartCondition, CartResult

if TYPE_CHECKING:
    from .sync import CartSynchronizer

logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    """Who is authoritative for the cart"""
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


def clamp_to_stock(cart: Cart) -> bool:
    """Bring every line within its stock cap in place. True if any changed."""
    clamped = False
    for item in cart.items:
        if item.available_stock > 0 and item.quantity > item.available_stock:
            item.quantity = item.available_stock
            clamped = True
    return clamped


class CartStore:
    """Stateful cart container"""

    def __init__(
        self,
        persistence: CartPersistence,
        tax_rate: Optional[pricing.Number] = None,
        cart: Optional[Cart] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.persistence = persistence
        self.tax_rate = pricing.as_decimal(settings.tax_rate if tax_rate is None else tax_rate)
        self.mode = SessionMode.GUEST
        self.synchronizer: Optional["CartSynchronizer"] = None
        self._clock = clock

        initial = cart.model_copy(deep=True) if cart is not None else Cart()
        clamp_to_stock(initial)
        self._cart, _ = pricing.reprice(initial, self.tax_rate, self._clock())

    @classmethod
    def restore(
        cls,
        persistence: CartPersistence,
        tax_rate: Optional[pricing.Number] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "CartStore":
        """Boot from the saved snapshot, falling back to an empty cart"""
        cart = persistence.load()
        if persistence.last_condition == CartCondition.CORRUPT_SNAPSHOT:
            logger.warning("Starting from an empty cart after discarding a corrupt snapshot")
        store = cls(persistence, tax_rate=tax_rate, cart=cart, clock=clock)
        logger.info(f"Restored cart with {len(store._cart.items)} lines at revision {store.revision}")
        return store

    # ==================== Read access ====================

    @property
    def cart(self) -> Cart:
        """Copy of the current cart"""
        return self._cart.model_copy(deep=True)

    @property
    def revision(self) -> int:
        return self._cart.revision

    @property
    def state(self) -> CartState:
        return self._cart.state

    @property
    def coupon_state(self) -> CouponState:
        return self._cart.coupon_state

    @property
    def is_authenticated(self) -> bool:
        return self.mode == SessionMode.AUTHENTICATED

    @property
    def sync_warning(self) -> Optional[str]:
        """User-facing warning once write-through retries are exhausted"""
        if self.synchronizer is None:
            return None
        return self.synchronizer.warning

    # ==================== Line operations ====================

    def add_item(self, item: CartItem, quantity: Optional[int] = None) -> CartResult:
        """Add a catalog snapshot, merging into an existing line of the same identity"""
        qty = item.quantity if quantity is None else quantity

        rejection = self._check_addable(item, qty)
        if rejection is not None:
            return rejection

        draft = self._draft()
        conditions: list[CartCondition] = []
        self._place(draft, item, qty, conditions)

        return self._commit(draft, conditions, message=f"Added {qty}x {item.name} to cart")

    def remove_item(self, product_id: str, variant: Optional[dict[str, str]] = None) -> CartResult:
        """Delete a line. Removing a missing line is a successful no-op."""
        index = self._cart.find_line(product_id, variant)
        if index is None:
            return CartResult(accepted=True, cart=self.cart, message="Item not in cart")

        draft = self._draft()
        removed = draft.items.pop(index)
        return self._commit(draft, [], message=f"Removed {removed.name} from cart")

    def update_quantity(
        self,
        product_id: str,
        variant: Optional[dict[str, str]],
        new_quantity: int,
    ) -> CartResult:
        """
        Set a line's quantity; below one removes the line.

        An out-of-stock line can still be lowered but not raised.
        """
        if new_quantity < 1:
            return self.remove_item(product_id, variant)

        index = self._cart.find_line(product_id, variant)
        if index is None:
            return self._reject(CartCondition.LINE_NOT_FOUND, "Item not in cart")

        draft = self._draft()
        line = draft.items[index]
        conditions: list[CartCondition] = []

        if line.available_stock == 0 and new_quantity > line.quantity:
            return self._reject(
                CartCondition.QUANTITY_EXCEEDS_STOCK,
                f"{line.name} is out of stock",
            )

        if 0 < line.available_stock < new_quantity:
            line.quantity = line.available_stock
            conditions.append(CartCondition.QUANTITY_CLAMPED)
            message = f"Only {line.available_stock} of {line.name} available"
        else:
            line.quantity = new_quantity
            message = "Cart updated"

        return self._commit(draft, conditions, message=message)

    # ==================== Coupons ====================

    def apply_coupon(self, coupon: Optional[Coupon]) -> CartResult:
        """Attach a coupon if it is eligible for the current subtotal"""
        if coupon is None:
            return self._reject(CartCondition.COUPON_INELIGIBLE, "Invalid coupon code")

        if self._cart.is_empty:
            return self._reject(
                CartCondition.COUPON_INELIGIBLE,
                "Add items to your cart before applying a coupon",
            )

        reason = coupon.ineligibility_reason(self._cart.subtotal, self._clock())
        if reason is not None:
            return self._reject(CartCondition.COUPON_INELIGIBLE, reason)

        draft = self._draft()
        draft.applied_coupon = coupon.model_copy(deep=True)
        return self._commit(draft, [], message=f"Coupon {coupon.code} applied")

    def remove_coupon(self) -> CartResult:
        if self._cart.applied_coupon is None:
            return CartResult(accepted=True, cart=self.cart, message="No coupon applied")

        draft = self._draft()
        draft.applied_coupon = None
        return self._commit(draft, [], message="Coupon removed")

    # ==================== Whole-cart operations ====================

    def clear(self) -> CartResult:
        """Empty the cart and erase its local snapshot"""
        draft = Cart(revision=self._cart.revision)
        return self._commit(draft, [], message="Cart cleared", erase_snapshot=True)

    def set_shipping(self, amount: pricing.Number) -> CartResult:
        """Store the amount quoted by the shipping-rate service"""
        try:
            value = pricing.as_decimal(amount)
        except (InvalidOperation, ValueError):
            return self._reject(CartCondition.INVALID_AMOUNT, f"Invalid shipping amount: {amount!r}")

        if not value.is_finite() or value < 0:
            return self._reject(CartCondition.INVALID_AMOUNT, f"Invalid shipping amount: {amount!r}")

        draft = self._draft()
        draft.shipping_amount = value
        return self._commit(draft, [], message="Shipping updated")

    # ==================== Save for later ====================

    def save_for_later(self, product_id: str, variant: Optional[dict[str, str]] = None) -> CartResult:
        """Park a line outside the priced items"""
        index = self._cart.find_line(product_id, variant)
        if index is None:
            return self._reject(CartCondition.LINE_NOT_FOUND, "Item not in cart")

        draft = self._draft()
        line = draft.items.pop(index)

        saved_index = draft.find_saved(product_id, variant)
        if saved_index is not None:
            draft.saved_for_later.pop(saved_index)
        draft.saved_for_later.append(line)

        return self._commit(draft, [], message=f"Saved {line.name} for later")

    def move_to_cart(
        self,
        product_id: str,
        variant: Optional[dict[str, str]] = None,
        quantity: int = 1,
    ) -> CartResult:
        """Bring a saved line back into the cart under the usual stock rules"""
        saved_index = self._cart.find_saved(product_id, variant)
        if saved_index is None:
            return self._reject(CartCondition.LINE_NOT_FOUND, "Item not saved for later")

        saved = self._cart.saved_for_later[saved_index]
        rejection = self._check_addable(saved, quantity)
        if rejection is not None:
            return rejection

        draft = self._draft()
        draft.saved_for_later.pop(saved_index)
        conditions: list[CartCondition] = []
        self._place(draft, saved, quantity, conditions)

        return self._commit(draft, conditions, message=f"Moved {saved.name} to cart")

    # ==================== Checkout boundary ====================

    def prepare_checkout(self) -> CartResult:
        """Hand the cart to checkout if every line can be bought"""
        if self._cart.is_empty:
            return self._reject(CartCondition.ITEM_UNAVAILABLE, "Cart is empty")

        unavailable = self._cart.unavailable_items
        if unavailable:
            names = ", ".join(item.name for item in unavailable)
            return self._reject(CartCondition.ITEM_UNAVAILABLE, f"Not available: {names}")

        return CartResult(accepted=True, cart=self.cart)

    def complete_checkout(self) -> CartResult:
        """Called once payment has gone through"""
        return self.clear()

    # ==================== Session plumbing ====================

    def adopt(self, cart: Cart, write_through: bool = True) -> CartResult:
        """Replace the cart wholesale, e.g. with the result of a login merge"""
        draft = cart.model_copy(deep=True)
        conditions: list[CartCondition] = []
        if clamp_to_stock(draft):
            conditions.append(CartCondition.QUANTITY_CLAMPED)
        return self._commit(draft, conditions, write_through=write_through)

    def enter_authenticated(self, synchronizer: "CartSynchronizer") -> None:
        self.mode = SessionMode.AUTHENTICATED
        self.synchronizer = synchronizer

    def enter_guest(self) -> None:
        self.mode = SessionMode.GUEST
        self.synchronizer = None

    def snapshot_to_local(self) -> bool:
        return self.persistence.save(self._cart)

    def discard_local_snapshot(self) -> bool:
        return self.persistence.clear()

    # ==================== Internals ====================

    def _draft(self) -> Cart:
        return self._cart.model_copy(deep=True)

    def _reject(self, condition: CartCondition, message: str) -> CartResult:
        logger.info(f"Cart operation rejected ({condition.value}): {message}")
        return CartResult(accepted=False, cart=self.cart, conditions=[condition], message=message)

    def _check_addable(self, item: CartItem, quantity: int) -> Optional[CartResult]:
        if quantity < 1:
            return self._reject(CartCondition.INVALID_QUANTITY, "Quantity must be at least 1")

        if item.available_stock == 0:
            return self._reject(CartCondition.QUANTITY_EXCEEDS_STOCK, f"{item.name} is out of stock")

        if quantity > item.available_stock:
            return self._reject(
                CartCondition.QUANTITY_EXCEEDS_STOCK,
                f"Insufficient stock. Available: {item.available_stock}",
            )

        return None

    def _place(
        self,
        draft: Cart,
        item: CartItem,
        quantity: int,
        conditions: list[CartCondition],
    ) -> None:
        """Merge into the same-identity line or append a new one"""
        index = draft.find_line(item.product_id, item.variant)

        if index is None:
            line = item.model_copy(deep=True)
            line.quantity = quantity
            line.added_at = self._clock()
            draft.items.append(line)
            return

        # Keep the price snapshotted when the line was created, refresh the stock cap
        line = draft.items[index]
        line.available_stock = item.available_stock
        wanted = line.quantity + quantity
        if wanted > line.available_stock:
            line.quantity = line.available_stock
            conditions.append(CartCondition.QUANTITY_CLAMPED)
        else:
            line.quantity = wanted

    def _commit(
        self,
        draft: Cart,
        conditions: list[CartCondition],
        message: Optional[str] = None,
        erase_snapshot: bool = False,
        write_through: bool = True,
    ) -> CartResult:
        now = self._clock()
        draft.revision = max(self._cart.revision, draft.revision) + 1
        draft.updated_at = now

        coupon = draft.applied_coupon
        priced, detached = pricing.reprice(draft, self.tax_rate, now)
        if detached:
            logger.info(f"Detached coupon {coupon.code} that no longer applies")
            conditions.append(CartCondition.COUPON_DETACHED)

        self._cart = priced
        conditions.extend(self._persist(erase_snapshot, write_through))

        return CartResult(accepted=True, cart=self.cart, conditions=conditions, message=message)

    def _persist(self, erase_snapshot: bool, write_through: bool) -> list[CartCondition]:
        if self.is_authenticated and self.synchronizer is not None:
            conditions = []
            if erase_snapshot:
                self.persistence.clear()
            elif self.synchronizer.keeps_local_copy and not self.persistence.save(self._cart):
                logger.warning(f"Local cart snapshot not written for revision {self.revision} while unsynced")
                conditions.append(CartCondition.PERSISTENCE_WRITE_FAILED)
            if write_through:
                self.synchronizer.schedule()
            if self.synchronizer.exhausted:
                conditions.append(CartCondition.REMOTE_SYNC_FAILED)
            return conditions

        if erase_snapshot:
            ok = self.persistence.clear()
        else:
            ok = self.persistence.save(self._cart)

        if not ok:
            logger.warning(f"Local cart snapshot not written for revision {self.revision}; will retry on next change")
            return [CartCondition.PERSISTENCE_WRITE_FAILED]
        return []
