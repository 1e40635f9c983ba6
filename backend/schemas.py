from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, validator

from models import Category, OrderStatus, PaymentStatus
from permissions import Role


def _required_text(v: Optional[str], field: str, max_length: int) -> str:
    if v is None or len(v.strip()) == 0:
        raise ValueError(f"{field} cannot be empty")
    if len(v) > max_length:
        raise ValueError(f"{field} cannot exceed {max_length} characters")
    return v.strip()


def _valid_email(v: str) -> str:
    v = (v or "").strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Email address is not valid")
    return v


def _valid_category(v) -> str:
    category = Category.parse(v)
    if category is None:
        raise ValueError("Invalid category. Must be one of: Food, Drink, Dessert")
    return category.value


def _valid_price(v: float) -> float:
    if v < 0:
        raise ValueError("Price cannot be negative")
    if v > 1000000:
        raise ValueError("Price is too high")
    return round(v, 2)


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str

    @validator("name")
    def validate_name(cls, v: str) -> str:
        return _required_text(v, "Name", 100)

    @validator("email")
    def validate_email(cls, v: str) -> str:
        return _valid_email(v)

    @validator("password")
    def validate_password(cls, v: str) -> str:
        if not v or len(v) < 4:
            raise ValueError("Password must be at least 4 characters")
        return v


class UserLogin(BaseModel):
    email: str
    password: str


class UserSave(BaseModel):
    """Admin add/update. Either user_id (update) or email (upsert) is needed."""
    user_id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: str
    password: Optional[str] = None

    @validator("email")
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _valid_email(v) if v is not None else v

    @validator("role")
    def validate_role(cls, v: str) -> str:
        return Role.validate(v).value


class UserResponse(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    role: str


class MenuItemCreate(BaseModel):
    name: str
    description: str
    price: float
    category: str
    image_id: str
    image_url: Optional[str] = None
    is_available: bool = True

    @validator("name")
    def validate_name(cls, v: str) -> str:
        return _required_text(v, "Menu item name", 100)

    @validator("description")
    def validate_description(cls, v: str) -> str:
        return _required_text(v, "Description", 2000)

    @validator("price")
    def validate_price(cls, v: float) -> float:
        return _valid_price(v)

    @validator("category")
    def validate_category(cls, v: str) -> str:
        return _valid_category(v)

    @validator("image_id")
    def validate_image_id(cls, v: str) -> str:
        return _required_text(v, "Image", 255)


class MenuItemUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    image_id: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None

    @validator("name")
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _required_text(v, "Menu item name", 100) if v is not None else v

    @validator("description")
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _required_text(v, "Description", 2000) if v is not None else v

    @validator("price")
    def validate_price(cls, v: Optional[float]) -> Optional[float]:
        return _valid_price(v) if v is not None else v

    @validator("category")
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        return _valid_category(v) if v is not None else v

    @validator("image_id")
    def validate_image_id(cls, v: Optional[str]) -> Optional[str]:
        return _required_text(v, "Image", 255) if v is not None else v


class AvailabilityUpdate(BaseModel):
    is_available: bool


class MenuItemResponse(BaseModel):
    id: int
    name: str
    description: str
    price: float
    category: str
    image_id: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool


class ImageUploadResponse(BaseModel):
    id: str
    url: str


class OrderItemCreate(BaseModel):
    menu_item_id: int
    quantity: int

    @validator("quantity")
    def validate_quantity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be greater than 0")
        if v > 100:
            raise ValueError("Quantity cannot exceed 100")
        return v


class OrderCreate(BaseModel):
    customer_name: str
    table_number: str
    items: List[OrderItemCreate]
    total: float
    notes: Optional[str] = None

    @validator("customer_name")
    def validate_customer_name(cls, v: str) -> str:
        return _required_text(v, "Customer name", 100)

    @validator("table_number")
    def validate_table_number(cls, v: str) -> str:
        return _required_text(v, "Table number", 20)

    @validator("items")
    def validate_items(cls, v: List[OrderItemCreate]) -> List[OrderItemCreate]:
        if not v:
            raise ValueError("Order must contain at least one item")
        return v

    @validator("total")
    def validate_total(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Total cannot be negative")
        return round(v, 2)


class OrderItemResponse(BaseModel):
    id: int
    menu_item_id: int
    quantity: int
    menu_item: Optional[MenuItemResponse] = None


class OrderResponse(BaseModel):
    id: int
    customer_name: str
    table_number: str
    notes: Optional[str] = None
    total: float
    status: str
    payment_status: str
    created_at: datetime
    status_updated_at: datetime
    items: List[OrderItemResponse]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class SalesReportResponse(BaseModel):
    order_count: int
    revenue: float
    orders: List[OrderResponse]


class UnpaidReportResponse(BaseModel):
    order_count: int
    outstanding: float
    orders: List[OrderResponse]


class ClearOrdersResponse(BaseModel):
    deleted_count: int
