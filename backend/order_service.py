import logging
import os
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

import models
from errors import NotFound, ValidationError
from menu_service import menu_item_to_response
from models import OrderStatus, PaymentStatus, TERMINAL_STATUSES
from permissions import Action, require
from schemas import OrderCreate, OrderItemResponse, OrderResponse

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = 0.01

ALLOWED_TRANSITIONS = {
    OrderStatus.RECEIVED: {OrderStatus.SENT_TO_CHEF, OrderStatus.CANCELLED},
    OrderStatus.SENT_TO_CHEF: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def strict_transitions_enabled() -> bool:
    return os.getenv("STRICT_ORDER_TRANSITIONS", "true").strip().lower() not in ("0", "false", "no", "off")


def can_transition(current: OrderStatus, new: OrderStatus, strict: bool = True) -> bool:
    if current == new or not strict:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, set())


def order_to_response(order: models.Order) -> OrderResponse:
    items = [
        OrderItemResponse(
            id=item.id,
            menu_item_id=item.menu_item_id,
            quantity=item.quantity,
            menu_item=menu_item_to_response(item.menu_item) if item.menu_item else None,
        )
        for item in order.items
    ]
    return OrderResponse(
        id=order.id,
        customer_name=order.customer_name,
        table_number=order.table_number,
        notes=order.notes,
        total=float(order.total),
        status=order.status,
        payment_status=order.payment_status,
        created_at=order.created_at,
        status_updated_at=order.status_updated_at,
        items=items,
    )


def _parse_enum(enum_cls, value, label):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Unknown {label} '{value}'. Must be one of: {allowed}")


def completed_filter():
    """Delivered or cancelled, and paid: safe to bulk clear."""
    return (
        models.Order.status.in_([s.value for s in TERMINAL_STATUSES]),
        models.Order.payment_status == PaymentStatus.PAID.value,
    )


class OrderService:
    def __init__(self, db: Session, strict_transitions: Optional[bool] = None):
        self.db = db
        self.strict_transitions = strict_transitions_enabled() if strict_transitions is None else strict_transitions

    def _query(self):
        return self.db.query(models.Order).options(
            selectinload(models.Order.items).selectinload(models.OrderItem.menu_item)
        )

    def list_orders(self) -> List[OrderResponse]:
        orders = self._query().order_by(
            models.Order.status_updated_at.desc(), models.Order.id.desc()
        ).all()
        return [order_to_response(order) for order in orders]

    def get_order(self, order_id: int) -> OrderResponse:
        return order_to_response(self._find(order_id))

    def create_order(self, actor, data: OrderCreate) -> OrderResponse:
        require(actor, Action.CREATE_ORDER)

        menu_ids = {item.menu_item_id for item in data.items}
        menu = {
            m.id: m for m in self.db.query(models.MenuItem).filter(models.MenuItem.id.in_(list(menu_ids))).all()
        }
        expected_total = 0.0
        for line in data.items:
            menu_item = menu.get(line.menu_item_id)
            if menu_item is None:
                raise ValidationError(f"Menu item {line.menu_item_id} does not exist")
            if not menu_item.is_available:
                raise ValidationError(f"{menu_item.name} is not available")
            expected_total += float(menu_item.price) * line.quantity
        expected_total = round(expected_total, 2)

        if abs(expected_total - data.total) > TOTAL_TOLERANCE:
            raise ValidationError(
                f"Order total {data.total:.2f} does not match current prices ({expected_total:.2f})"
            )

        now = models.utcnow()
        order = models.Order(
            customer_name=data.customer_name,
            table_number=data.table_number,
            notes=data.notes,
            total=expected_total,
            status=OrderStatus.RECEIVED.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            status_updated_at=now,
            items=[
                models.OrderItem(menu_item_id=line.menu_item_id, quantity=line.quantity)
                for line in data.items
            ],
        )
        try:
            self.db.add(order)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Order {order.id} placed for table {order.table_number} ({expected_total:.2f})")
        return self.get_order(order.id)

    def update_order_status(self, actor, order_id: int, status: OrderStatus) -> OrderResponse:
        require(actor, Action.UPDATE_ORDER_STATUS)
        status = _parse_enum(OrderStatus, status, "order status")
        order = self._find(order_id)

        try:
            current = OrderStatus(order.status)
        except ValueError:
            # legacy free-text status, let it move anywhere
            current = None
        # re-setting the current status is allowed and still counts as a status change
        if current is not None and not can_transition(current, status, self.strict_transitions):
            raise ValidationError(f"Cannot change order from {current.value} to {status.value}")

        order.status = status.value
        order.status_updated_at = models.utcnow()
        self.db.commit()
        logger.info(f"Order {order_id} status -> {status.value}")
        return self.get_order(order_id)

    def update_payment_status(self, actor, order_id: int, payment_status: PaymentStatus) -> OrderResponse:
        require(actor, Action.UPDATE_PAYMENT_STATUS)
        payment_status = _parse_enum(PaymentStatus, payment_status, "payment status")
        order = self._find(order_id)

        order.payment_status = payment_status.value
        self.db.commit()
        logger.info(f"Order {order_id} payment -> {payment_status.value}")
        return self.get_order(order_id)

    def clear_completed_orders(self, actor) -> int:
        require(actor, Action.CLEAR_COMPLETED_ORDERS)

        completed_ids = self.db.query(models.Order.id).filter(*completed_filter())
        try:
            self.db.query(models.OrderItem).filter(
                models.OrderItem.order_id.in_(completed_ids.scalar_subquery())
            ).delete(synchronize_session=False)
            deleted = self.db.query(models.Order).filter(*completed_filter()).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.expire_all()
        logger.info(f"Cleared {deleted} completed orders")
        return deleted

    def delete_order(self, actor, order_id: int) -> None:
        require(actor, Action.DELETE_ORDER)
        self._find(order_id)

        try:
            self.db.query(models.OrderItem).filter(models.OrderItem.order_id == order_id).delete(
                synchronize_session=False
            )
            self.db.query(models.Order).filter(models.Order.id == order_id).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.expire_all()
        logger.info(f"Order {order_id} deleted")

    def _find(self, order_id: int) -> models.Order:
        order = self._query().filter(models.Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        return order
