from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import OrderStatus, PaymentMethod


class ApiModel(BaseModel):
    """Request bodies use camelCase keys on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# --- Order Models ---
class OrderItemIn(ApiModel):
    """One requested line item."""
    product_id: int
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    images: Optional[List[str]] = None


class OrderCreate(ApiModel):
    """Defines the data model for an incoming order request."""
    billing_id: int
    order_items: List[OrderItemIn] = Field(min_length=1)
    shipping_cost: float = Field(0, ge=0)
    discount_amount: float = Field(0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: OrderStatus = OrderStatus.PENDING
    notes: str = Field("", max_length=500)


class OrderUpdate(ApiModel):
    """Partial order update; only the fields that are sent get changed."""
    order_items: Optional[List[OrderItemIn]] = Field(None, min_length=1)
    shipping_cost: Optional[float] = Field(None, ge=0)
    discount_amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    status: Optional[OrderStatus] = None
    notes: Optional[str] = Field(None, max_length=500)


class StatusChange(ApiModel):
    status: OrderStatus


# --- Billing Models ---
class BillingFields(ApiModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    company: Optional[str] = Field(None, max_length=100)
    phone: str = Field(min_length=1, max_length=20, pattern=r"^[\d\s\-\+\(\)]+$")
    email: EmailStr
    country: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    postcode: str = Field(min_length=1, max_length=20)
    ship_to_different_address: bool = False
    order_notes: Optional[str] = Field(None, max_length=500)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value):
        if len(value) > 100:
            raise ValueError("Email must be at most 100 characters")
        return value.lower()


class BillingCreate(BillingFields):
    """Billing details, optionally with the items of an order to place right away."""
    order_items: Optional[List[OrderItemIn]] = None
    shipping_cost: float = Field(0, ge=0)
    discount_amount: float = Field(0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH


# --- Product Models ---
class ProductCreate(ApiModel):
    name: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    sales_price: float = Field(ge=0)
    images: List[str] = Field(default_factory=list)
    image: Optional[str] = None
    description: str = ""
