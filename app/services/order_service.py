# app/services/order_service.py
import random
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.domain.errors import (
    ConcurrencyConflictError,
    EmptyCartError,
    InvalidOrderStateError,
    InvalidTransitionError,
    OrderNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from app.domain.events import (
    OrderCancelledEvent,
    OrderDeliveredEvent,
    OrderPlacedEvent,
    OrderShippedEvent,
)
from app.domain.order_status import OrderStatus, can_transition, parse_status
from app.repos.order_repo import OrderRepo
from app.repos.user_repo import UserRepo
from app.services.cart_service import CartService
from app.services.notification_service import EventPublisher
from app.services.product_service import ProductService
from app.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


def generate_order_number(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{random.randint(0, 99999):05d}"


def calculate_total(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    """Suma unit_price * quantity, zaokraglona do groszy."""
    total = sum((Decimal(price) * quantity for price, quantity in lines), Decimal("0.00"))
    return total.quantize(CENT)


class OrderService:
    """
    Serwis odpowiedzialny za domenę zamówień (order ledger).
    Jedyne miejsce, ktore zmienia status zamowienia - przez transition().
    """

    def __init__(self, db: Session, publisher=None):
        self.db = db
        self.repo = OrderRepo(db)
        self.users = UserRepo(db)
        self.publisher = publisher or EventPublisher()
        self.cart_service = CartService(db)
        self.product_service = ProductService(db, publisher=self.publisher)

    def create_order_from_cart(self, user_id: int, shipping_address: str) -> OrderModel:
        """
        Use Case: Tworzenie zamówienia z koszyka.

        1. Waliduje adres i pobiera snapshot pozycji koszyka
        2. Rezerwuje stany magazynowe
        3. Tworzy zamówienie i czyści koszyk - jeden commit
        4. Po commicie publikuje OrderPlacedEvent
        """
        address = (shipping_address or "").strip()
        if not address:
            raise ValidationError("Shipping address is required")

        user = self.users.get_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        items = self.cart_service.get_cart_with_items(user_id)
        if not items:
            raise EmptyCartError()

        try:
            order_items = []
            for item in items:
                self.product_service.reserve_inventory(item.product_id, item.quantity)
                order_items.append(
                    OrderItemModel(
                        product_id=item.product_id,
                        product_name=item.product.name,
                        quantity=item.quantity,
                        unit_price=item.price,
                    )
                )

            now = datetime.now(timezone.utc)
            order = OrderModel(
                order_number=generate_order_number(now),
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                total=calculate_total((i.unit_price, i.quantity) for i in order_items),
                shipping_address=address,
                items=order_items,
                version=1,
                created_at=now,
                updated_at=now,
            )
            self.repo.add_order(order)
            self.cart_service.clear(user_id, commit=False)
            self.repo.commit()
        except Exception:
            # zamowienie i czyszczenie koszyka razem albo wcale
            self.repo.rollback()
            raise

        logger.info(f"Order {order.order_number} created for user {user_id}, total {order.total}")

        self.publisher.publish(
            OrderPlacedEvent(
                order_number=order.order_number,
                user_id=user.id,
                user_email=user.email,
                user_first_name=user.first_name,
                total_amount=order.total,
            )
        )
        return order

    def transition(
        self,
        order_id: UUID,
        target: OrderStatus,
        allowed_from: Iterable[OrderStatus] | None = None,
    ) -> tuple[OrderModel, bool]:
        """
        Strzezone przejscie statusu. Zwraca (order, changed).

        Ten sam status -> no-op (idempotencja). Przejscie spoza tabeli
        albo ze statusu spoza allowed_from -> InvalidTransitionError.
        """
        target = OrderStatus(target)

        order = self.repo.get_order_for_update(order_id)
        if not order:
            self.repo.rollback()
            raise OrderNotFoundError(f"Order with ID {order_id} not found")

        current = OrderStatus(order.status)

        if current == target:
            self.repo.rollback()
            logger.info(f"Order {order_id} already {target.value}, nothing to do")
            return order, False

        if (allowed_from is not None and current not in set(allowed_from)) or not can_transition(current, target):
            self.repo.rollback()
            raise InvalidTransitionError(order_id, current.value, target.value)

        try:
            if target == OrderStatus.CANCELLED:
                for item in order.items:
                    self.product_service.release_inventory(item.product_id, item.quantity)

            # Optimistic locking
            # np w bazie update set version 2 where id X and version 1
            rowcount = self.repo.update_order_version(
                order_id=order.id,
                old_version=order.version,
                new_data={
                    "status": target.value,
                    "version": order.version + 1,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            if rowcount == 0:
                raise ConcurrencyConflictError(
                    f"Order {order_id} was modified concurrently, retry the operation"
                )
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        self.repo.refresh(order)
        logger.info(f"Order {order_id} status {current.value} -> {target.value}")

        self._publish_status_event(order, target)
        return order, True

    def _publish_status_event(self, order: OrderModel, status: OrderStatus) -> None:
        user = order.user
        common = {
            "order_number": order.order_number,
            "user_id": user.id,
            "user_email": user.email,
            "user_first_name": user.first_name,
        }

        if status == OrderStatus.SHIPPED:
            event = OrderShippedEvent(tracking_number=f"TRK{int(time.time() * 1000)}", **common)
        elif status == OrderStatus.DELIVERED:
            event = OrderDeliveredEvent(**common)
        elif status == OrderStatus.CANCELLED:
            event = OrderCancelledEvent(total_amount=order.total, **common)
        else:
            return

        self.publisher.publish(event)

    def get_order(self, order_id: UUID, user_id: int) -> OrderModel:
        """
        Use Case: Pobranie zamówienia (Query).
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise OrderNotFoundError(f"Order with ID {order_id} not found")

        if order.user_id != user_id:
            raise PermissionError("You are not authorized to view this order")

        return order

    def list_orders(self, user_id: int, status: str | None = None, page: int = 0, limit: int = 10) -> dict:
        status_filter = parse_status(status)
        if status and status_filter is None:
            logger.warning(f"Invalid order status provided: '{status}'. Ignoring status filter.")

        page = max(page, 0)
        limit = min(max(limit, 1), 100)
        orders, total = self.repo.list_user_orders(user_id, status_filter, page * limit, limit)

        return {"orders": orders, "page": page, "limit": limit, "total": total}

    def cancel_order(self, order_id: UUID, user_id: int) -> OrderModel:
        order = self.get_order(order_id, user_id)

        if order.status == OrderStatus.CANCELLED.value:
            raise InvalidOrderStateError("Order is already cancelled")

        order, _ = self.transition(order.id, OrderStatus.CANCELLED)
        logger.info(f"Order {order_id} cancelled by user {user_id}")
        return order

    def update_status(self, order_id: UUID, status: str) -> OrderModel:
        """Zmiana statusu przez admina - tez przez tabele przejsc."""
        target = parse_status(status)
        if target is None:
            raise ValidationError(f"Unknown order status: {status}")

        order, _ = self.transition(order_id, target)
        return order

    def auto_deliver(self, order_id: UUID) -> bool:
        _, changed = self.transition(order_id, OrderStatus.DELIVERED, allowed_from={OrderStatus.SHIPPED})
        if changed:
            logger.info(f"Order {order_id} auto-delivered")
        return changed

    def find_orders_for_auto_delivery(self, cutoff: datetime) -> list[OrderModel]:
        return self.repo.find_by_status_updated_before(OrderStatus.SHIPPED, cutoff)

    def find_delivered_without_reviews(self, start: datetime, end: datetime) -> list[OrderModel]:
        return self.repo.find_delivered_without_reviews(start, end)

    def mark_review_reminded(self, order_id: UUID, sent_at: datetime) -> None:
        self.repo.mark_review_reminded(order_id, sent_at)
        self.repo.commit()

    def get_user_order_stats(self, user_id: int) -> dict:
        counts = {s: self.repo.count_by_status(s, user_id=user_id) for s in OrderStatus}
        return {
            "total_orders": self.repo.count_user_orders(user_id),
            "pending": counts[OrderStatus.PENDING],
            "paid": counts[OrderStatus.PAID],
            "processing": counts[OrderStatus.PROCESSING],
            "shipped": counts[OrderStatus.SHIPPED],
            "delivered": counts[OrderStatus.DELIVERED],
            "cancelled": counts[OrderStatus.CANCELLED],
            "total_spent": self.repo.total_spent_by_user(user_id),
        }

    def count_orders(self) -> int:
        return self.repo.count_orders()

    def count_pending_orders(self) -> int:
        return self.repo.count_by_status(OrderStatus.PENDING)
