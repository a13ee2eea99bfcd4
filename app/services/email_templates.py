# app/services/email_templates.py
from decimal import Decimal
from html import escape

from app.domain.events import CartItemData, ProductStockData
from app.utils.settings import FRONTEND_URL


def _money(amount: Decimal) -> str:
    return f"${Decimal(amount):.2f}"


def _general_email(title: str, greeting: str, main: str, detail: str, footer: str) -> str:
    return (
        "<html><body>"
        f"<h2>{escape(title)}</h2>"
        f"<p>{escape(greeting)}</p>"
        f"<p>{escape(main)}</p>"
        f"<p><strong>{escape(detail)}</strong></p>"
        f"<p>{escape(footer)}</p>"
        "</body></html>"
    )


def order_confirmation(first_name: str, order_number: str, total: Decimal) -> tuple[str, str]:
    return (
        f"Order Confirmation - #{order_number}",
        _general_email(
            "Order Confirmation",
            f"Hi {first_name},",
            f"Thank you for your order! Your order #{order_number} has been confirmed.",
            f"Order Total: {_money(total)}",
            "We'll send you another email when your order ships.",
        ),
    )


def order_shipped(first_name: str, order_number: str, tracking_number: str) -> tuple[str, str]:
    return (
        f"Your Order Has Been Shipped - #{order_number}",
        _general_email(
            "Order Shipped",
            f"Hi {first_name},",
            f"Great news! Your order #{order_number} has been shipped.",
            f"Tracking Number: {tracking_number}",
            "You can track your package using the tracking number above.",
        ),
    )


def order_delivered(first_name: str, order_number: str) -> tuple[str, str]:
    return (
        f"Your Order Has Been Delivered - #{order_number}",
        _general_email(
            "Order Delivered",
            f"Hi {first_name},",
            f"Your order #{order_number} has been delivered!",
            "We hope you enjoy your purchase!",
            "Please consider leaving a review to help other customers.",
        ),
    )


def order_cancelled(first_name: str, order_number: str, total: Decimal) -> tuple[str, str]:
    return (
        f"Your Order Has Been Cancelled - #{order_number}",
        _general_email(
            "Order Cancelled",
            f"Hi {first_name},",
            f"Your order #{order_number} has been cancelled.",
            f"Order Total: {_money(total)}",
            "If you were charged, the payment will be refunded to the original method.",
        ),
    )


def review_reminder(first_name: str, order_number: str) -> tuple[str, str]:
    return (
        f"Share Your Feedback - Order #{order_number}",
        _general_email(
            "Share Your Feedback",
            f"Hi {first_name},",
            f"How was your recent order #{order_number}?",
            "We'd love to hear your thoughts!",
            "Your feedback helps us improve and helps other customers make informed decisions.",
        ),
    )


def price_drop(first_name: str, product_name: str, old_price: Decimal, new_price: Decimal) -> tuple[str, str]:
    discount = (Decimal(old_price) - Decimal(new_price)) / Decimal(old_price) * 100
    return (
        f"Price Drop Alert: {product_name}",
        _general_email(
            "Price Drop Alert",
            f"Hi {first_name},",
            f"Great news! The price of {product_name} has dropped!",
            f"Was: {_money(old_price)} | Now: {_money(new_price)} ({discount:.0f}% off)",
            "Don't miss out on this deal!",
        ),
    )


def restock(first_name: str, product_name: str) -> tuple[str, str]:
    return (
        f"Back in Stock: {product_name}",
        _general_email(
            "Back in Stock",
            f"Hi {first_name},",
            f"{product_name} is back in stock!",
            "The item you were waiting for is now available.",
            "Order now before it sells out again!",
        ),
    )


def security_alert(first_name: str, alert_type: str, details: str) -> tuple[str, str]:
    return (
        f"Security Alert: {alert_type}",
        _general_email(
            "Security Alert",
            f"Hi {first_name},",
            f"Security Alert: {alert_type}",
            details,
            "If you didn't perform this action, please contact support immediately.",
        ),
    )


def password_reset(first_name: str, reset_token: str) -> tuple[str, str]:
    return (
        "Password Reset Request",
        _general_email(
            "Password Reset Request",
            f"Hi {first_name},",
            "We received a request to reset your password.",
            f"Your reset code: {reset_token}",
            "This code will expire in 15 minutes. If you didn't request this, please ignore this email.",
        ),
    )


def abandoned_cart(first_name: str, items: list[CartItemData], cart_total: Decimal) -> tuple[str, str]:
    rows = "".join(
        f"<tr><td>{escape(i.product_name)}</td><td>{i.quantity}</td><td>{_money(i.price)}</td></tr>"
        for i in items
    )
    body = (
        "<html><body>"
        f"<h2>You left items in your cart!</h2>"
        f"<p>Hi {escape(first_name)},</p>"
        f"<table>{rows}</table>"
        f"<p><strong>Cart total: {_money(cart_total)}</strong></p>"
        f'<p><a href="{escape(FRONTEND_URL)}/cart">Return to your cart</a></p>'
        "</body></html>"
    )
    return "You left items in your cart!", body


def low_stock_alert(low: list[ProductStockData], out: list[ProductStockData]) -> tuple[str, str]:
    def _rows(products):
        return "".join(
            f"<li>{escape(p.name)}: {p.stock_quantity}</li>" for p in products
        ) or "<li>none</li>"

    body = (
        "<html><body>"
        "<h2>Inventory Alert</h2>"
        f"<h3>Low stock ({len(low)})</h3><ul>{_rows(low)}</ul>"
        f"<h3>Out of stock ({len(out)})</h3><ul>{_rows(out)}</ul>"
        "</body></html>"
    )
    return "Inventory Alert - Low Stock Products", body


def daily_report(total_orders: int, pending_orders: int, low_stock_count: int) -> tuple[str, str]:
    body = (
        "<html><body>"
        "<h2>Daily Business Report</h2>"
        "<ul>"
        f"<li>Total orders: {total_orders}</li>"
        f"<li>Pending orders: {pending_orders}</li>"
        f"<li>Low stock products: {low_stock_count}</li>"
        "</ul>"
        "</body></html>"
    )
    return "Daily Business Report", body
