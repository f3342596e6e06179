import enum
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base # Import the Base class from our database setup


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    BANK_TRANSFER = "bank_transfer"


# Allowed moves when strict transitions are switched on. Staying put is always allowed.
STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


# Catalogue entry referenced by order line items. Never changed by the order flow.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    sku = Column(String, index=True, nullable=False) # Stock Keeping Unit.
    sales_price = Column(Float, nullable=False)
    images = Column(JSON, default=list) # Ordered list of image paths.
    image = Column(String, nullable=True) # Legacy single-image field.
    description = Column(String, default="")
    status = Column(String, default="selling")
    created_at = Column(DateTime, default=datetime.now)


# Customer billing details an order is charged to.
class Billing(Base):
    __tablename__ = "billing"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    company = Column(String, nullable=True)
    phone = Column(String, nullable=False)
    email = Column(String, index=True, nullable=False) # Stored lower-cased.
    country = Column(String, nullable=False)
    address = Column(String, nullable=False)
    city = Column(String, nullable=False)
    postcode = Column(String, nullable=False)
    ship_to_different_address = Column(Boolean, default=False)
    order_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # No delete cascade: deleting a billing sets billing_id to NULL on its orders.
    orders = relationship("Order", back_populates="billing")


# Defines the ORM model for an 'Order' stored in the database.
class Order(Base):
    # The name of the database table.
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("invoice_no", name="uq_orders_invoice_no"),
        UniqueConstraint("masked_order_id", name="uq_orders_masked_order_id"),
    )

    # Define the table columns.
    id = Column(Integer, primary_key=True, index=True) # Auto-incrementing primary key.
    billing_id = Column(Integer, ForeignKey("billing.id", ondelete="SET NULL"), index=True)
    total_amount = Column(Float, nullable=False) # subtotal + shipping - discount, never clamped.
    shipping_cost = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String, nullable=False, default=PaymentMethod.CASH.value)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value)
    invoice_no = Column(String, nullable=False) # INV-YYYYMMDD-NNNNN, set once before insert.
    masked_order_id = Column(String, nullable=False) # ORD-YYYY-MM-DD-XXXXXX, set once before insert.
    order_time = Column(DateTime, default=datetime.now, index=True)
    notes = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    billing = relationship("Billing", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    @property
    def items_subtotal(self):
        """Sum of the stored line-item subtotals."""
        return sum(item.subtotal for item in self.items)


# One product/quantity/price entry within an order.
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    position = Column(Integer, nullable=False, default=0) # Index in the submitted item list.
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False) # Price captured at order time.
    subtotal = Column(Float, nullable=False) # quantity * unit_price, stored for audit.
    images = Column(JSON, default=list) # Snapshot taken when the order was placed.

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
