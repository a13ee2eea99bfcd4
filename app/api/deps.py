# app/api/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.services.idempotency_service import WebhookEventRegistry
from app.services.notification_service import EventPublisher
from app.services.order_service import OrderService
from app.services.payment_gateway import StripeClient
from app.services.payment_service import PaymentService
from app.services.product_service import ProductService


#osobne zaleznosci, zeby testy mogly je podmienic przez dependency_overrides
def get_publisher() -> EventPublisher:
    return EventPublisher()


def get_gateway() -> StripeClient:
    return StripeClient()


def get_event_registry() -> WebhookEventRegistry:
    return WebhookEventRegistry()


def get_order_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> OrderService:
    return OrderService(db, publisher=publisher)


def get_product_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
) -> ProductService:
    return ProductService(db, publisher=publisher)


def get_payment_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_publisher),
    gateway: StripeClient = Depends(get_gateway),
    registry: WebhookEventRegistry = Depends(get_event_registry),
) -> PaymentService:
    return PaymentService(db, gateway=gateway, registry=registry, publisher=publisher)
