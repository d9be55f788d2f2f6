"""Order models and the order status state machine."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from menu_ordering_service.models.menu_models import Money, quantize_price
from menu_ordering_service.models.restaurant_models import PaymentMethod


class OrderType(str, Enum):
    """How the customer receives the order."""

    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    """Enumeration of order status values, in queue order."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"

    @property
    def next_status(self) -> "OrderStatus | None":
        """Status an operator advance moves to, or None when terminal."""
        return _NEXT_STATUS.get(self)


_NEXT_STATUS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
}


class OrderLine(BaseModel):
    """Snapshot of one cart line at submission time."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    item_id: str = Field(
        ...,
        description="Menu item the line was created from",
        validation_alias=AliasChoices("itemId", "id"),
        serialization_alias="itemId",
    )
    name: str = Field(..., description="Item name at submission time")
    price: Money = Field(..., description="Unit price at submission time", ge=0)
    quantity: int = Field(..., description="Ordered quantity", ge=1)

    @property
    def amount(self) -> Decimal:
        """Line amount: unit price times quantity."""
        return quantize_price(self.price * self.quantity)


class Order(BaseModel):
    """A submitted order.

    The total is fixed when the order is created and is never recomputed from
    the current menu. Only the status changes after creation.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Generated order identifier")
    restaurant_id: str = Field(..., description="Restaurant the order was placed with")
    items: list[OrderLine] = Field(..., description="Line snapshots", min_length=1)
    total: Money = Field(..., description="Sum of line amounts at submission", ge=0)
    order_type: OrderType = Field(..., description="Dine-in, takeaway or delivery")
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="Queue status")
    queue_number: int = Field(..., description="Customer-facing queue token", ge=1)
    created_at: datetime = Field(..., description="Submission timestamp")
    payment_method: PaymentMethod | None = Field(None, description="Selected payment method")
    customer_name: str | None = Field(None, description="Optional name called at pickup")

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Read timestamps stored without an offset as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def to_store_item(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
