"""Menu data models.

Items reference their category by name, not id: the web client groups the
menu by the category label it stores on each item.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

OTHER_CATEGORY = "Other"

CENTS = Decimal("0.01")

# Highest unit price accepted for a menu item or a cart line
MAX_PRICE = Decimal("1000000")


def quantize_price(value: Decimal) -> Decimal:
    """Round an amount to two decimal places.

    Raises:
        ValueError: If the amount has too many digits to be held in cents
    """
    try:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"amount {value} is out of range") from e


def _decimal_from_number(value: Any) -> Any:
    # Go through the text form so a stored 12.99 stays 12.99
    if isinstance(value, float):
        return Decimal(str(value))
    return value


# Amounts are Decimal in memory and plain JSON numbers on the wire
Money = Annotated[
    Decimal,
    BeforeValidator(_decimal_from_number),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class MenuItem(BaseModel):
    """Menu item model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Unique identifier for the menu item", min_length=1)
    restaurant_id: str | None = Field(None, description="Restaurant this item belongs to")
    name: str = Field(..., description="Item name")
    description: str = Field(default="", description="Item description")
    price: Money = Field(..., description="Item price", ge=0)
    category: str = Field(default="", description="Name of the category this item is listed under")
    available: bool = Field(
        default=True,
        description="Whether item is currently available",
        validation_alias=AliasChoices("available", "isAvailable"),
        serialization_alias="available",
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric ids written by older clients."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Decimal) -> Decimal:
        """Keep two-decimal precision; reject NaN, infinity and prices above MAX_PRICE."""
        if not v.is_finite():
            raise ValueError("price must be a finite number")
        if v > MAX_PRICE:
            raise ValueError(f"price must not exceed {MAX_PRICE}")
        return quantize_price(v)

    def to_store_item(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


class MenuCategory(BaseModel):
    """Menu category model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Unique identifier for the category", min_length=1)
    restaurant_id: str | None = Field(None, description="Restaurant this category belongs to")
    name: str = Field(..., description="Category name", min_length=1)
    description: str | None = Field(None, description="Category description")
    order: int = Field(default=1, description="Display order of category", ge=1)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric ids written by older clients."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def to_store_item(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)
