# app/services/payment_service.py
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from sqlalchemy.orm import Session

from app.domain.errors import (
    InvalidOrderStateError,
    InvalidTransitionError,
    UnknownPaymentReferenceError,
    ValidationError,
)
from app.domain.order_status import OrderStatus
from app.repos.order_repo import OrderRepo
from app.services.idempotency_service import WebhookEventRegistry
from app.services.order_service import OrderService
from app.services.payment_gateway import StripeClient
from app.utils.logging import get_logger

logger = get_logger(__name__)

# typ eventu -> (status docelowy, statusy z ktorych wolno przejsc)
WEBHOOK_TRANSITIONS = {
    "payment_intent.succeeded": (OrderStatus.PAID, frozenset({OrderStatus.PENDING})),
    "payment_intent.processing": (OrderStatus.PROCESSING, frozenset({OrderStatus.PENDING})),
    "payment_intent.canceled": (OrderStatus.CANCELLED, frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})),
}


def to_minor_units(amount: Decimal) -> int:
    """Kwota w najmniejszej jednostce waluty (centy)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """
    Payment reconciler:
    - tworzenie payment intent dla zamowienia PENDING (referencja ustawiana raz)
    - weryfikacja i aplikowanie webhookow, idempotentnie po event id
    """

    def __init__(self, db: Session, gateway: StripeClient | None = None, registry=None, publisher=None):
        self.repo = OrderRepo(db)
        self.orders = OrderService(db, publisher=publisher)
        self.gateway = gateway or StripeClient()
        self.registry = registry or WebhookEventRegistry()

    def create_payment_intent(self, user_id: int, order_id: UUID, currency: str = "usd") -> dict:
        order = self.orders.get_order(order_id, user_id)

        if order.status != OrderStatus.PENDING.value:
            raise InvalidOrderStateError("Payment intent can only be created for pending orders")

        if order.payment_intent_id:
            raise InvalidOrderStateError("Payment intent already exists for this order")

        amount = to_minor_units(order.total)
        intent = self.gateway.create_payment_intent(
            amount=amount,
            currency=currency.lower(),
            metadata={
                "user_id": str(user_id),
                "user_email": order.user.email,
                "order_id": str(order.id),
                "order_number": order.order_number,
            },
            idempotency_key=f"order-{order.id}",
        )

        # set-once, warunek w UPDATE chroni przed rownoleglym wywolaniem
        rowcount = self.repo.set_payment_intent(order.id, intent["id"])
        if rowcount == 0:
            self.repo.rollback()
            raise InvalidOrderStateError("Order is no longer eligible for a payment intent")
        self.repo.commit()
        # UPDATE z pominieciem ORM - obiekt w sesji trzeba odswiezyc
        self.repo.refresh(order)

        logger.info(f"Payment intent {intent['id']} created for user {user_id} and order {order.id}")

        return {
            "client_secret": intent.get("client_secret"),
            "payment_intent_id": intent["id"],
            "amount": intent.get("amount", amount),
            "currency": intent.get("currency", currency.lower()),
            "status": intent.get("status", "requires_payment_method"),
        }

    def construct_webhook_event(self, payload: bytes | str, signature_header: str | None) -> dict:
        return self.gateway.construct_event(payload, signature_header)

    def handle_webhook_event(self, event: dict) -> str:
        """
        Zwraca wynik: applied / noop / stale / duplicate / ignored.
        """
        event_type = event.get("type")
        event_id = event.get("id")
        logger.info(f"Processing webhook event {event_id}: {event_type}")

        mapping = WEBHOOK_TRANSITIONS.get(event_type)
        if mapping is None:
            logger.info(f"Unhandled event type: {event_type}")
            return "ignored"

        if not event_id:
            raise ValidationError("Webhook event has no id")

        payment_intent_id = _payment_intent_id(event)

        if self.registry.is_processed(event_id):
            logger.info(f"Webhook event {event_id} already processed, skipping")
            return "duplicate"

        target, allowed_from = mapping
        order = self.repo.get_by_payment_intent(payment_intent_id)
        if order is None:
            raise UnknownPaymentReferenceError(payment_intent_id)

        try:
            _, changed = self.orders.transition(order.id, target, allowed_from=allowed_from)
            result = "applied" if changed else "noop"
            logger.info(f"Order status {target.value} for payment intent {payment_intent_id}: {result}")
        except InvalidTransitionError as e:
            # spozniony / nieuporzadkowany event - nie cofamy statusu
            logger.warning(f"Ignoring stale webhook {event_id} ({event_type}): {e}")
            result = "stale"

        # znacznik dopiero po commicie; blad wyzej = brak znacznika, bramka ponowi
        self.registry.mark_processed(event_id, result)
        return result


def _payment_intent_id(event: dict) -> str:
    try:
        payment_intent_id = event["data"]["object"]["id"]
    except (KeyError, TypeError):
        raise ValidationError("Unable to read payment intent from webhook event") from None

    if not payment_intent_id:
        raise ValidationError("Unable to read payment intent from webhook event")
    return payment_intent_id
