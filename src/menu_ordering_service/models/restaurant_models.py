"""Restaurant (tenant) models.

Persisted JSON keeps the camelCase field names written by the web client, so
records stay interchangeable with data created before this service existed.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PaymentMethod(str, Enum):
    """Payment method tags a restaurant can accept."""

    STRIPE = "stripe"
    COUNTER = "counter"
    CASH = "cash"


class Restaurant(BaseModel):
    """A tenant: one restaurant, its public slug and contact details."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Generated restaurant identifier")
    user_id: str = Field(..., description="Identifier of the owning user")
    name: str = Field(..., description="Restaurant name", min_length=1)
    slug: str = Field(..., description="Unique public identifier used in links")
    description: str = Field(default="", description="Descriptive text")
    address: str = Field(default="", description="Street address")
    phone: str = Field(default="", description="Contact phone")
    email: str = Field(default="", description="Contact email")
    payment_methods: list[PaymentMethod] = Field(
        ..., description="Accepted payment methods", min_length=1
    )
    is_active: bool = Field(default=True, description="Whether the public page is served")
    created_at: datetime | None = Field(None, description="Setup completion timestamp")

    @field_validator("payment_methods")
    @classmethod
    def dedupe_payment_methods(cls, v: list[PaymentMethod]) -> list[PaymentMethod]:
        """Drop repeated payment method tags, keeping first occurrence order."""
        return list(dict.fromkeys(v))

    def accepts(self, method: PaymentMethod) -> bool:
        """Check whether the restaurant accepts a payment method."""
        return method in self.payment_methods

    def to_store_item(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape.

        Returns:
            dict: camelCase representation
        """
        return self.model_dump(mode="json", by_alias=True)
