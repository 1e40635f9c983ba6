# models.py
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Float, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


def utcnow() -> datetime:
    # timestamp columns are timezone-aware, so never hand them naive values
    return datetime.now(timezone.utc)


class OrderStatus(str, PyEnum):
    RECEIVED = "Received"
    SENT_TO_CHEF = "Sent to Chef"
    PREPARING = "Preparing"
    READY = "Ready"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(str, PyEnum):
    PENDING = "Pending"
    PAID = "Paid"


class Category(str, PyEnum):
    FOOD = "Food"
    DRINK = "Drink"
    DESSERT = "Dessert"

    @classmethod
    def parse(cls, value):
        """Case-insensitive lookup, None for values outside the closed set."""
        if value is None:
            return None
        for category in cls:
            if category.value.lower() == str(value).strip().lower():
                return category
        return None

    @classmethod
    def display(cls, value) -> str:
        category = cls.parse(value)
        return category.value if category else cls.FOOD.value


TERMINAL_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="Customer")
    password = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String(20), nullable=False, default=Category.FOOD.value)
    image_id = Column(String(255), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String(100), nullable=False)
    table_number = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    total = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=OrderStatus.RECEIVED.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    status_updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")
