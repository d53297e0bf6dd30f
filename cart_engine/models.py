"""Cart, line item and coupon models"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """camelCase on the wire and in snapshots, snake_case in Python"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CouponKind(str, Enum):
    """How a coupon value is interpreted"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixedAmount"


class CartState(str, Enum):
    EMPTY = "empty"
    NON_EMPTY = "nonEmpty"


class CouponState(str, Enum):
    NONE = "none"
    ACTIVE = "active"


class Coupon(WireModel):
    """Promotion definition as supplied by the promotions service"""
    code: str
    kind: CouponKind
    value: Decimal = Field(ge=0)
    min_subtotal: Optional[Decimal] = Field(default=None, ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    description: str = ""

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("Coupon code must not be blank")
        return code

    @field_validator("starts_at", "expires_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_percentage_range(self) -> "Coupon":
        if self.kind == CouponKind.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage coupons must be between 0 and 100")
        return self

    def ineligibility_reason(
        self,
        subtotal: Decimal,
        at: Optional[datetime] = None,
    ) -> Optional[str]:
        """Explain why the coupon cannot apply to a subtotal, or None if it can"""
        now = at or utcnow()

        if not self.is_active:
            return "This coupon is no longer active"
        if self.starts_at and self.starts_at > now:
            return "This coupon is not yet active"
        if self.expires_at and self.expires_at < now:
            return "This coupon has expired"
        if self.min_subtotal is not None and subtotal < self.min_subtotal:
            return f"A minimum subtotal of {self.min_subtotal} is required for {self.code}"

        return None

    def is_eligible(self, subtotal: Decimal, at: Optional[datetime] = None) -> bool:
        return self.ineligibility_reason(subtotal, at) is None


class CartItem(WireModel):
    """One product/variant line in a cart"""
    product_id: str = Field(min_length=1)
    name: str
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    available_stock: int = Field(default=0, ge=0)
    variant: dict[str, str] = Field(default_factory=dict)
    image_ref: Optional[str] = None
    added_at: datetime = Field(default_factory=utcnow)

    @property
    def identity(self) -> tuple[str, frozenset]:
        """Key deciding whether two additions share a line"""
        return (self.product_id, frozenset(self.variant.items()))

    def matches(self, product_id: str, variant: Optional[dict[str, str]] = None) -> bool:
        return self.product_id == product_id and self.variant == (variant or {})

    def same_line(self, other: "CartItem") -> bool:
        return self.identity == other.identity

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def is_available(self) -> bool:
        """Whether the line can go through checkout as it stands"""
        return self.available_stock > 0 and self.quantity <= self.available_stock


class Cart(WireModel):
    """Shopping cart with its derived totals"""
    items: list[CartItem] = Field(default_factory=list)
    applied_coupon: Optional[Coupon] = None
    saved_for_later: list[CartItem] = Field(default_factory=list)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_amount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    grand_total: Decimal = Field(default=Decimal("0"), ge=0)
    revision: int = Field(default=0, ge=0)
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_unique_lines(self) -> "Cart":
        for lines in (self.items, self.saved_for_later):
            seen = set()
            for item in lines:
                if item.identity in seen:
                    raise ValueError(
                        f"Duplicate cart line for product {item.product_id} "
                        f"with variant {item.variant}"
                    )
                seen.add(item.identity)
        return self

    def find_line(self, product_id: str, variant: Optional[dict[str, str]] = None) -> Optional[int]:
        """Index of the matching line in items, or None"""
        return next(
            (index for index, item in enumerate(self.items) if item.matches(product_id, variant)),
            None,
        )

    def find_saved(self, product_id: str, variant: Optional[dict[str, str]] = None) -> Optional[int]:
        return next(
            (index for index, item in enumerate(self.saved_for_later) if item.matches(product_id, variant)),
            None,
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def state(self) -> CartState:
        return CartState.EMPTY if self.is_empty else CartState.NON_EMPTY

    @property
    def coupon_state(self) -> CouponState:
        return CouponState.NONE if self.applied_coupon is None else CouponState.ACTIVE

    @property
    def item_count(self) -> int:
        """Total units across all lines"""
        return sum(item.quantity for item in self.items)

    @property
    def unavailable_items(self) -> list[CartItem]:
        return [item for item in self.items if not item.is_available]


class CatalogProduct(WireModel):
    """Product as returned by the catalog/stock lookup"""
    id: str
    name: str
    price: Decimal = Field(ge=0)
    currency: str = "USD"
    stock_quantity: int = Field(ge=0, default=0)
    image_url: Optional[str] = None

    def to_cart_item(
        self,
        quantity: int = 1,
        variant: Optional[dict[str, str]] = None,
    ) -> CartItem:
        """Snapshot the current price and stock into a new cart line"""
        return CartItem(
            product_id=self.id,
            name=self.name,
            unit_price=self.price,
            quantity=quantity,
            available_stock=self.stock_quantity,
            variant=variant or {},
            image_ref=self.image_url,
        )
