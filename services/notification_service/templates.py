"""
Email bodies for order notifications.

Pure formatting: every function takes an already loaded order and returns
strings. Amounts are stored in major currency units and rendered with two
decimals followed by the upper-cased currency code.
"""
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class StatusContent:
    title: str
    message: str
    color: str
    bg_color: str


_STATUS_CONTENT = {
    "processing": StatusContent(
        "Your Order is Being Prepared",
        "Great news! Your order is now being prepared for shipment. Our team is carefully packaging your items.",
        "#3498db",
        "#e3f2fd",
    ),
    "shipped": StatusContent(
        "Your Order Has Shipped!",
        "Exciting news! Your order has been shipped and is on its way to you. You can expect to receive it soon.",
        "#f39c12",
        "#fff3cd",
    ),
    "delivered": StatusContent(
        "Your Order Has Been Delivered",
        "Your order has been successfully delivered! We hope you love your purchase. Thank you for shopping with us!",
        "#27ae60",
        "#d4edda",
    ),
    "cancelled": StatusContent(
        "Order Cancellation Notice",
        "We're sorry to inform you that your order has been cancelled. "
        "If you have any questions or concerns, please contact our support team.",
        "#e74c3c",
        "#f8d7da",
    ),
}


def status_content(status: str) -> StatusContent:
    content = _STATUS_CONTENT.get(status.lower())
    if content:
        return content
    return StatusContent(
        "Order Status Update",
        f"Your order status has been updated to: {status}",
        "#2c3e50",
        "#f8f9fa",
    )


def format_amount(amount: float, currency: str) -> str:
    return f"{amount or 0:.2f} {currency.upper()}"


def _format_date(value: Optional[datetime]) -> str:
    return (value or datetime.now()).strftime("%B %d, %Y %I:%M %p")


def _item_rows(order):
    for item in order.items:
        name = item.product_name or "Product"
        yield name, item.quantity, item.unit_price, item.unit_price * item.quantity


def _customer_name(shipping: dict) -> str:
    return shipping.get("fullName") or shipping.get("name") or "Valued Customer"


def _address_lines(shipping: dict) -> list[str]:
    lines = [
        _customer_name(shipping),
        shipping.get("address", ""),
        f"{shipping.get('postalCode', '')} {shipping.get('city', '')}".strip(),
        shipping.get("country", ""),
    ]
    if shipping.get("phone"):
        lines.append(f"Phone: {shipping['phone']}")
    return [line for line in lines if line]


def _summary_lines(order) -> list[tuple[str, str]]:
    lines = []
    if order.discount_amount:
        # total = subtotal + shipping - discount; shipping is whatever the items don't account for
        before_discount = (order.total_amount or 0) + order.discount_amount
        subtotal = sum(line_total for *_, line_total in _item_rows(order)) or before_discount
        shipping = before_discount - subtotal
        label = f"Discount ({order.discount_code})" if order.discount_code else "Discount"
        lines.append(("Subtotal", format_amount(subtotal, order.currency)))
        if shipping > 0.005:
            lines.append(("Shipping", format_amount(shipping, order.currency)))
        lines.append((label, f"-{format_amount(order.discount_amount, order.currency)}"))
    lines.append(("Total", format_amount(order.total_amount, order.currency)))
    return lines


def _section(title: str, body: str, accent: str = "#3498db") -> str:
    return (
        '<div style="background-color: #fff; padding: 20px; border: 1px solid #ddd; '
        'border-radius: 5px; margin-bottom: 20px;">'
        f'<h2 style="color: #2c3e50; margin-top: 0; border-bottom: 2px solid {accent}; '
        f'padding-bottom: 10px;">{escape(title)}</h2>{body}</div>'
    )


def _items_table(order) -> str:
    rows = "".join(
        '<tr><td style="padding: 10px; border-bottom: 1px solid #eee;">'
        f"<strong>{escape(name)}</strong><br>"
        f"Quantity: {quantity} &times; {format_amount(unit_price, order.currency)}</td>"
        '<td style="padding: 10px; border-bottom: 1px solid #eee; text-align: right;">'
        f"{format_amount(line_total, order.currency)}</td></tr>"
        for name, quantity, unit_price, line_total in _item_rows(order)
    )
    return f'<table style="width: 100%; border-collapse: collapse;"><tbody>{rows}</tbody></table>'


def _summary_table(order) -> str:
    rows = "".join(
        f'<tr><td style="padding: 5px 0;">{escape(label)}:</td>'
        f'<td style="padding: 5px 0; text-align: right;">{escape(value)}</td></tr>'
        for label, value in _summary_lines(order)
    )
    return f'<table style="width: 100%;">{rows}</table>'


def _page(title: str, banner: str, sections: list[str], brand: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)}</title></head>"
        '<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; '
        'max-width: 600px; margin: 0 auto; padding: 20px;">'
        f"{banner}{''.join(sections)}"
        '<div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #ddd; '
        'text-align: center; color: #7f8c8d; font-size: 0.9em;">'
        f"<p>Thank you for shopping with us!</p><p>{escape(brand)}</p></div>"
        "</body></html>"
    )


def render_confirmation(order, session_id: str, brand: str) -> RenderedEmail:
    shipping = order.shipping or {}
    order_date = _format_date(order.created_at)

    banner = (
        '<div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px; margin-bottom: 20px;">'
        '<h1 style="color: #2c3e50; margin-top: 0;">Thank you for your purchase!</h1>'
        "<p style=\"margin-bottom: 0;\">Your order has been confirmed and we're preparing it for shipment.</p></div>"
    )
    details = (
        f"<p><strong>Order ID:</strong> {escape(str(order.id))}</p>"
        f"<p><strong>Order Date:</strong> {order_date}</p>"
        f"<p><strong>Transaction ID:</strong> {escape(session_id)}</p>"
    )
    address = "<p>" + "<br>".join(escape(line) for line in _address_lines(shipping)) + "</p>"
    next_steps = (
        '<div style="background-color: #e8f5e9; padding: 15px; border-radius: 5px; margin-top: 20px;">'
        "<p style=\"margin: 0; color: #2c3e50;\"><strong>What's next?</strong><br>"
        "We'll send you another email when your order ships. If you have any questions, "
        "please don't hesitate to contact us.</p></div>"
    )
    html = _page(
        "Order Confirmation",
        banner,
        [
            _section("Order Details", details),
            _section("Items Ordered", _items_table(order)),
            _section("Order Summary", _summary_table(order)),
            _section("Shipping Address", address),
            next_steps,
        ],
        brand,
    )

    item_lines = [
        f"- {name} (Qty: {quantity}) - {format_amount(line_total, order.currency)}"
        for name, quantity, _, line_total in _item_rows(order)
    ] or ["No items"]
    text = "\n".join([
        "Thank you for your purchase!",
        "",
        "Your order has been confirmed and we're preparing it for shipment.",
        "",
        "Order Details:",
        f"- Order ID: {order.id}",
        f"- Order Date: {order_date}",
        f"- Transaction ID: {session_id}",
        "",
        "Items Ordered:",
        *item_lines,
        "",
        "Order Summary:",
        *[f"{label}: {value}" for label, value in _summary_lines(order)],
        "",
        "Shipping Address:",
        *_address_lines(shipping),
        "",
        "What's next?",
        "We'll send you another email when your order ships. "
        "If you have any questions, please don't hesitate to contact us.",
        "",
        "Thank you for shopping with us!",
        brand,
    ])

    return RenderedEmail("Order Confirmation - Thank you for your purchase!", html, text)


def render_status_update(order, new_status: str, old_status: Optional[str], brand: str) -> RenderedEmail:
    shipping = order.shipping or {}
    content = status_content(new_status)

    banner = (
        f'<div style="background-color: {content.bg_color}; padding: 20px; border-radius: 5px; '
        f'margin-bottom: 20px; border-left: 4px solid {content.color};">'
        f'<h1 style="color: {content.color}; margin-top: 0;">{escape(content.title)}</h1>'
        f"<p>Dear {escape(_customer_name(shipping))},</p>"
        f'<p style="margin-top: 10px; color: #2c3e50;">{escape(content.message)}</p></div>'
    )
    info = (
        f"<p><strong>Order ID:</strong> {escape(str(order.id))}</p>"
        f"<p><strong>Order Date:</strong> {_format_date(order.created_at)}</p>"
    )
    if old_status:
        info += f"<p><strong>Previous Status:</strong> {escape(old_status)}</p>"
    info += (
        f'<p><strong>Current Status:</strong> <span style="color: {content.color}; font-weight: bold; '
        f'text-transform: capitalize;">{escape(new_status)}</span></p>'
    )
    address = "<p>" + "<br>".join(escape(line) for line in _address_lines(shipping)) + "</p>"
    html = _page(
        content.title,
        banner,
        [
            _section("Order Information", info, content.color),
            _section("Order Items", _items_table(order) + _summary_table(order), content.color),
            _section("Shipping Address", address, content.color),
        ],
        brand,
    )

    text_lines = [
        content.title,
        "",
        f"Dear {_customer_name(shipping)},",
        "",
        content.message,
        "",
        "Order Information:",
        f"- Order ID: {order.id}",
    ]
    if old_status:
        text_lines.append(f"- Previous Status: {old_status}")
    text_lines += [
        f"- Current Status: {new_status}",
        "",
        "Order Items:",
        *[
            f"- {name} (Qty: {quantity}) - {format_amount(line_total, order.currency)}"
            for name, quantity, _, line_total in _item_rows(order)
        ],
        f"Total: {format_amount(order.total_amount, order.currency)}",
        "",
        "Shipping Address:",
        *_address_lines(shipping),
        "",
        "Thank you for shopping with us!",
        brand,
    ]

    subject = f"Order Update - {content.title} (Order #{str(order.id)[:8]})"
    return RenderedEmail(subject, html, "\n".join(text_lines))
