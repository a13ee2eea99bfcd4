# app/domain/events.py
"""
Zdarzenia cyklu zycia (lifecycle events).

Niemutowalne, zdenormalizowane snapshoty - tylko dane potrzebne do
wyrenderowania powiadomienia, nigdy referencje do OrderModel/UserModel,
bo handler dziala asynchronicznie w workerze Celery po zamknieciu sesji.
"""
from decimal import Decimal
from typing import ClassVar, List

from pydantic import BaseModel, ConfigDict


class LifecycleEvent(BaseModel):
    event_type: ClassVar[str] = ""

    model_config = ConfigDict(frozen=True)


class UserNotificationData(BaseModel):
    user_id: int
    email: str
    first_name: str

    model_config = ConfigDict(frozen=True)


class CartItemData(BaseModel):
    product_name: str
    quantity: int
    price: Decimal

    model_config = ConfigDict(frozen=True)


class ProductStockData(BaseModel):
    name: str
    stock_quantity: int

    model_config = ConfigDict(frozen=True)


class OrderPlacedEvent(LifecycleEvent):
    event_type: ClassVar[str] = "order_placed"

    order_number: str
    user_id: int
    user_email: str
    user_first_name: str
    total_amount: Decimal


class OrderShippedEvent(LifecycleEvent):
    event_type: ClassVar[str] = "order_shipped"

    order_number: str
    user_id: int
    user_email: str
    user_first_name: str
    tracking_number: str


class OrderDeliveredEvent(LifecycleEvent):
    event_type: ClassVar[str] = "order_delivered"

    order_number: str
    user_id: int
    user_email: str
    user_first_name: str


class OrderCancelledEvent(LifecycleEvent):
    event_type: ClassVar[str] = "order_cancelled"

    order_number: str
    user_id: int
    user_email: str
    user_first_name: str
    total_amount: Decimal


class AbandonedCartEvent(LifecycleEvent):
    event_type: ClassVar[str] = "abandoned_cart"

    user_id: int
    user_email: str
    user_first_name: str
    items: List[CartItemData]
    cart_total: Decimal


class ReviewReminderEvent(LifecycleEvent):
    event_type: ClassVar[str] = "review_reminder"

    order_number: str
    user_id: int
    user_email: str
    user_first_name: str


class LowStockAlertEvent(LifecycleEvent):
    event_type: ClassVar[str] = "low_stock_alert"

    low_stock_products: List[ProductStockData]
    out_of_stock_products: List[ProductStockData]


class DailyReportEvent(LifecycleEvent):
    event_type: ClassVar[str] = "daily_report"

    total_orders: int
    pending_orders: int
    low_stock_count: int


class PriceDropEvent(LifecycleEvent):
    event_type: ClassVar[str] = "price_drop"

    product_name: str
    old_price: Decimal
    new_price: Decimal
    interested_users: List[UserNotificationData]


class ProductRestockedEvent(LifecycleEvent):
    event_type: ClassVar[str] = "product_restocked"

    product_name: str
    interested_users: List[UserNotificationData]


class AccountSecurityEvent(LifecycleEvent):
    event_type: ClassVar[str] = "account_security"

    user_id: int
    user_email: str
    user_first_name: str
    alert_type: str
    details: str


class PasswordResetEvent(LifecycleEvent):
    event_type: ClassVar[str] = "password_reset"

    user_id: int
    user_email: str
    user_first_name: str
    reset_token: str


EVENT_TYPES: dict[str, type[LifecycleEvent]] = {
    cls.event_type: cls
    for cls in (
        OrderPlacedEvent,
        OrderShippedEvent,
        OrderDeliveredEvent,
        OrderCancelledEvent,
        AbandonedCartEvent,
        ReviewReminderEvent,
        LowStockAlertEvent,
        DailyReportEvent,
        PriceDropEvent,
        ProductRestockedEvent,
        AccountSecurityEvent,
        PasswordResetEvent,
    )
}


def serialize_event(event: LifecycleEvent) -> tuple[str, dict]:
    return event.event_type, event.model_dump(mode="json")


def deserialize_event(event_type: str, payload: dict) -> LifecycleEvent:
    try:
        cls = EVENT_TYPES[event_type]
    except KeyError:
        raise ValueError(f"Unknown event type: {event_type}") from None
    return cls.model_validate(payload)
