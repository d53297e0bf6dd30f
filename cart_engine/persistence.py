"""
Persistence Adapter

Mirrors the cart to a single durable key and restores it at start-up.
Saving never raises; loading always yields a valid cart, discarding
anything that cannot be trusted.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .config import Settings, settings
from .models import Cart, CartItem, Coupon, CouponKind
from .results import CartCondition

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class KeyValueStorage(ABC):
    """Durable get/set/remove surface"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class InMemoryStorage(KeyValueStorage):
    """Process-local storage, mostly for tests"""

    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileStorage(KeyValueStorage):
    """One JSON file per key inside a directory"""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        # Write to a sibling file and swap, so a failed write leaves the old snapshot
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        except OSError:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class CartPersistence:
    """Versioned cart snapshots on top of a key-value storage"""

    def __init__(self, storage: KeyValueStorage, key: Optional[str] = None):
        self.storage = storage
        self.key = key or settings.storage_key
        self.last_condition: Optional[CartCondition] = None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "CartPersistence":
        """Build the adapter configured in the environment"""
        config = config or settings
        if config.file_storage_enabled:
            storage: KeyValueStorage = FileStorage(config.storage_dir)
        else:
            storage = InMemoryStorage()
        return cls(storage, key=config.storage_key)

    def save(self, cart: Cart) -> bool:
        """Write a snapshot. Returns False, leaving the previous one, on failure."""
        try:
            payload = json.dumps({
                "schemaVersion": SCHEMA_VERSION,
                "cart": cart.model_dump(mode="json", by_alias=True),
            })
        except (TypeError, ValueError) as e:
            logger.error(f"Cart snapshot serialization failed, keeping previous snapshot: {e}")
            self.last_condition = CartCondition.PERSISTENCE_WRITE_FAILED
            return False

        try:
            self.storage.set(self.key, payload)
        except Exception as e:
            logger.error(f"Cart snapshot write failed for key '{self.key}': {e}")
            self.last_condition = CartCondition.PERSISTENCE_WRITE_FAILED
            return False

        logger.debug(f"Saved cart snapshot revision {cart.revision}")
        return True

    def load(self) -> Cart:
        """Restore the saved cart, or an empty one"""
        self.last_condition = None

        try:
            raw = self.storage.get(self.key)
        except Exception as e:
            logger.error(f"Cart snapshot read failed for key '{self.key}': {e}")
            return Cart()

        if raw is None:
            return Cart()

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            return self._discard("snapshot is not valid JSON")

        if not isinstance(payload, dict):
            return self._discard("snapshot is not an object")

        if "schemaVersion" not in payload:
            cart = migrate_legacy_snapshot(payload)
            if cart is None:
                return self._discard("unversioned snapshot could not be migrated")
            logger.info(f"Migrated legacy cart snapshot with {len(cart.items)} items")
            self.save(cart)
            return cart

        version = payload.get("schemaVersion")
        if version != SCHEMA_VERSION:
            return self._discard(f"schema version {version!r} does not match {SCHEMA_VERSION}")

        try:
            return Cart.model_validate(payload.get("cart"))
        except ValidationError as e:
            return self._discard(f"snapshot failed validation ({e.error_count()} errors)")

    def clear(self) -> bool:
        """Remove the snapshot entirely"""
        try:
            self.storage.remove(self.key)
        except Exception as e:
            logger.error(f"Failed to remove cart snapshot '{self.key}': {e}")
            return False
        return True

    def _discard(self, reason: str) -> Cart:
        logger.warning(f"Discarding corrupt cart snapshot: {reason}")
        self.last_condition = CartCondition.CORRUPT_SNAPSHOT
        self.clear()
        return Cart()


# ==================== Legacy migration ====================


def _first_image(product: dict) -> Optional[str]:
    images = product.get("images") or []
    if not images:
        return None
    first = images[0]
    if isinstance(first, dict):
        return first.get("url")
    return str(first)


def migrate_legacy_item(record: Any) -> Optional[CartItem]:
    """
    Convert one line of the old storefront shape, or None if it can't be.

    Old lines look like
    {"product": {"_id", "name", "images", "stock"}, "price", "quantity", "variant"}.
    """
    if not isinstance(record, dict):
        return None

    product = record.get("product")
    if isinstance(product, dict):
        product_id = product.get("_id") or product.get("id")
        name = product.get("name")
        image_ref = _first_image(product)
        stock = product.get("stock", record.get("stock", 0))
    elif isinstance(product, str):
        product_id = product
        name = record.get("name")
        image_ref = record.get("image")
        stock = record.get("stock", 0)
    else:
        return None

    if not product_id:
        return None

    raw_variant = record.get("variant") or {}
    if not isinstance(raw_variant, dict):
        return None
    variant = {str(k): str(v) for k, v in raw_variant.items() if v not in (None, "")}

    try:
        return CartItem(
            product_id=str(product_id),
            name=name or str(product_id),
            unit_price=record.get("price"),
            quantity=record.get("quantity", 1),
            available_stock=stock or 0,
            variant=variant,
            image_ref=image_ref,
        )
    except (ValidationError, TypeError):
        return None


def migrate_legacy_coupon(record: Any) -> Optional[Coupon]:
    if not isinstance(record, dict) or not record.get("code"):
        return None
    kind = CouponKind.PERCENTAGE if record.get("type") == "percentage" else CouponKind.FIXED_AMOUNT
    try:
        return Coupon(code=record["code"], kind=kind, value=record.get("discount", 0))
    except (ValidationError, TypeError):
        return None


def migrate_legacy_snapshot(payload: dict) -> Optional[Cart]:
    """
    Rebuild a cart from an unversioned snapshot.

    Lines that cannot be migrated are dropped individually, as are repeated
    lines for the same product and variant. Totals are left for the store
    to recompute.
    """
    items = payload.get("items")
    if not isinstance(items, list):
        return None

    migrated: list[CartItem] = []
    for record in items:
        item = migrate_legacy_item(record)
        if item is None:
            logger.warning(f"Dropping legacy cart line that could not be migrated: {record!r}")
            continue
        if any(existing.same_line(item) for existing in migrated):
            logger.warning(f"Dropping duplicate legacy cart line for product {item.product_id}")
            continue
        migrated.append(item)

    shipping = payload.get("shipping") or 0
    try:
        return Cart(
            items=migrated,
            applied_coupon=migrate_legacy_coupon(payload.get("appliedCoupon")),
            shipping_amount=shipping,
        )
    except (ValidationError, TypeError):
        return Cart(items=migrated)
