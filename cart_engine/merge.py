"""Guest/account cart merge"""

import logging

from .models import Cart
from .results import CartCondition, MergeResult

logger = logging.getLogger(__name__)


def merge_carts(local: Cart, remote: Cart) -> MergeResult:
    """
    Fold a device-local cart into the account cart.

    Lines present in both have their quantities summed, capped at the
    account line's stock; local-only lines are appended after the account
    lines in their local order. Nothing the shopper added is dropped.

    The account cart keeps its shipping amount and coupon; the local coupon
    is carried over only when the account cart has none. Totals are not
    recomputed here, the store reprices whatever it adopts.
    """
    merged = remote.model_copy(deep=True)
    conditions: list[CartCondition] = []
    merged_lines = 0
    appended_lines = 0

    for line in local.items:
        index = merged.find_line(line.product_id, line.variant)

        if index is None:
            merged.items.append(line.model_copy(deep=True))
            appended_lines += 1
            continue

        target = merged.items[index]
        quantity = target.quantity + line.quantity
        if target.available_stock > 0 and quantity > target.available_stock:
            logger.info(
                f"Merged quantity for {target.product_id} capped at stock "
                f"{target.available_stock} (wanted {quantity})"
            )
            quantity = target.available_stock
            if CartCondition.QUANTITY_CLAMPED not in conditions:
                conditions.append(CartCondition.QUANTITY_CLAMPED)
        target.quantity = quantity
        merged_lines += 1

    for saved in local.saved_for_later:
        if merged.find_saved(saved.product_id, saved.variant) is None \
                and merged.find_line(saved.product_id, saved.variant) is None:
            merged.saved_for_later.append(saved.model_copy(deep=True))

    if merged.applied_coupon is None and local.applied_coupon is not None:
        merged.applied_coupon = local.applied_coupon.model_copy(deep=True)

    logger.info(
        f"Merged guest cart into account cart: {merged_lines} lines combined, "
        f"{appended_lines} appended"
    )
    return MergeResult(
        cart=merged,
        conditions=conditions,
        merged_lines=merged_lines,
        appended_lines=appended_lines,
    )
