"""
Sales reporting and the PDF export handed to admins before a bulk clear.
"""
import io
import logging
from datetime import datetime
from typing import List

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from models import OrderStatus, PaymentStatus, TERMINAL_STATUSES
from order_service import OrderService
from permissions import Action, require
from schemas import OrderResponse, SalesReportResponse, UnpaidReportResponse

logger = logging.getLogger(__name__)

REPORT_TITLE = "SHEGA CAFE - SALES REPORT"
CURRENCY = "ETB"


def completed_sales(actor, db: Session) -> SalesReportResponse:
    require(actor, Action.VIEW_REPORTS)
    orders = [
        o for o in OrderService(db).list_orders()
        if o.status == OrderStatus.DELIVERED.value and o.payment_status == PaymentStatus.PAID.value
    ]
    revenue = round(sum(o.total for o in orders), 2)
    return SalesReportResponse(order_count=len(orders), revenue=revenue, orders=orders)


def unpaid_orders(actor, db: Session) -> UnpaidReportResponse:
    require(actor, Action.VIEW_REPORTS)
    terminal = {s.value for s in TERMINAL_STATUSES}
    orders = [
        o for o in OrderService(db).list_orders()
        if o.status in terminal and o.payment_status == PaymentStatus.PENDING.value
    ]
    outstanding = round(sum(o.total for o in orders), 2)
    return UnpaidReportResponse(order_count=len(orders), outstanding=outstanding, orders=orders)


def describe_items(order: OrderResponse) -> str:
    if not order.items:
        return "-"
    return ", ".join(
        f"{item.quantity}x {item.menu_item.name if item.menu_item else f'Item #{item.menu_item_id}'}"
        for item in order.items
    )


def wrap_text(text: str, max_chars: int) -> List[str]:
    if not text:
        return ["-"]
    lines, current = [], ""
    for word in text.split(" "):
        if len(current) + len(word) + (1 if current else 0) <= max_chars:
            current = f"{current} {word}" if current else word
        else:
            if current:
                lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines


COLUMNS = [
    ("Customer", 40),
    ("Items", 140),
    ("Table", 370),
    ("Total", 430),
    ("Time", 510),
]
LINE_HEIGHT = 14


def build_sales_pdf(orders: List[OrderResponse], generated_at: datetime = None) -> bytes:
    generated_at = generated_at or datetime.now()
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter

    def draw_header(y):
        c.setFont("Helvetica-Bold", 10)
        for label, x in COLUMNS:
            c.drawString(x, y, label)
        c.line(40, y - 4, width - 40, y - 4)
        return y - 18

    y = height - 50
    c.setFont("Helvetica-Bold", 18)
    c.drawString(40, y, REPORT_TITLE)
    y -= 24
    c.setFont("Helvetica", 10)
    c.drawString(40, y, f"Generated: {generated_at:%Y-%m-%d %H:%M}")
    y -= 20
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, y, f"Total Orders: {len(orders)}")
    y -= 26
    y = draw_header(y)

    for order in orders:
        item_lines = wrap_text(describe_items(order), 42)
        row_height = max(1, len(item_lines)) * LINE_HEIGHT

        if y - row_height < 80:
            c.showPage()
            y = draw_header(height - 50)

        c.setFont("Helvetica", 9)
        c.drawString(COLUMNS[0][1], y, order.customer_name[:18])
        for idx, line in enumerate(item_lines):
            c.drawString(COLUMNS[1][1], y - idx * LINE_HEIGHT, line)
        c.drawString(COLUMNS[2][1], y, order.table_number[:10])
        c.drawString(COLUMNS[3][1], y, f"{order.total:.2f} {CURRENCY}")
        c.drawString(COLUMNS[4][1], y, f"{order.status_updated_at:%H:%M}")
        y -= row_height + 6

    revenue = sum(o.total for o in orders)
    c.setFont("Helvetica-Bold", 10)
    c.drawRightString(width - 40, max(y - 10, 70), f"Revenue: {revenue:.2f} {CURRENCY}")
    c.setFont("Helvetica", 9)
    c.drawString(40, 50, "Thank you for choosing Shega Cafe!")

    c.showPage()
    c.save()
    buffer.seek(0)
    logger.info(f"Sales PDF built for {len(orders)} orders")
    return buffer.read()


def sales_pdf(actor, db: Session) -> bytes:
    return build_sales_pdf(completed_sales(actor, db).orders)
