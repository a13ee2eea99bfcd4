# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List
from decimal import Decimal
from datetime import datetime
from uuid import UUID


class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")
    email: str = Field(..., min_length=3, max_length=255)
    first_name: str = Field(..., min_length=1, max_length=100)


class UserRead(BaseModel):
    id: int
    email: str
    first_name: str

    model_config = ConfigDict(from_attributes=True)


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")


class CartItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    price: Decimal


class CartOut(BaseModel):
    user_id: int
    items: List[CartItemOut]
    total: Decimal
    updated_at: datetime | None = None


class OrderCreate(BaseModel):
    """Schema dla tworzenia zamówienia z koszyka użytkownika."""

    user_id: int = Field(..., gt=0)
    # pusty adres sprawdzany w serwisie (ValidationError), nie tutaj
    shipping_address: str = Field(..., max_length=1000)


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: UUID
    order_number: str
    user_id: int
    status: str
    total: Decimal
    shipping_address: str
    payment_intent_id: str | None = None
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrdersPage(BaseModel):
    orders: List[OrderOut]
    page: int
    limit: int
    total: int


class OrderStatsOut(BaseModel):
    total_orders: int
    pending: int
    paid: int
    processing: int
    shipped: int
    delivered: int
    cancelled: int
    total_spent: Decimal


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


class PaymentIntentIn(BaseModel):
    user_id: int = Field(..., gt=0)
    order_id: UUID
    currency: str = Field("usd", min_length=3, max_length=3)


class PaymentIntentOut(BaseModel):
    client_secret: str | None = None
    payment_intent_id: str
    amount: int
    currency: str
    status: str


class WebhookAck(BaseModel):
    received: bool = True
    result: str


class NotificationPreferencesOut(BaseModel):
    user_id: int
    order_updates: bool
    shipping_notifications: bool
    promotional_emails: bool
    newsletter: bool
    product_recommendations: bool
    price_drop_alerts: bool
    back_in_stock_alerts: bool
    account_security_alerts: bool
    password_reset_emails: bool
    review_reminders: bool

    model_config = ConfigDict(from_attributes=True)


class NotificationPreferencesUpdate(BaseModel):
    """Czesciowa aktualizacja - pola None zostawiaja zapisane wartosci."""

    order_updates: bool | None = None
    shipping_notifications: bool | None = None
    promotional_emails: bool | None = None
    newsletter: bool | None = None
    product_recommendations: bool | None = None
    price_drop_alerts: bool | None = None
    back_in_stock_alerts: bool | None = None
    account_security_alerts: bool | None = None
    password_reset_emails: bool | None = None
    review_reminders: bool | None = None


class PriceChangeIn(BaseModel):
    price: Decimal = Field(..., gt=0)


class RestockIn(BaseModel):
    quantity: int = Field(..., gt=0)


class ProductOut(BaseModel):
    id: int
    name: str
    price: Decimal
    stock_quantity: int
    active: bool

    model_config = ConfigDict(from_attributes=True)
