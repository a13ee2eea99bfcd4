# app/repos/order_repo.py
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.orm import Session, selectinload

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.data.models.review import ReviewModel
from app.domain.order_status import OrderStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: UUID) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_for_update(self, order_id: UUID) -> OrderModel | None:
        # SELECT ... FOR UPDATE (postgres), sqlite ignoruje blokade
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_by_payment_intent(self, payment_intent_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.payment_intent_id == payment_intent_id)
        ).scalar_one_or_none()

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.execute(
            select(exists().where(OrderModel.order_number == order_number))
        ).scalar()

    def update_order_version(self, order_id: UUID, old_version: int, new_data: dict) -> int:
        # optimistic locking: UPDATE orders SET ... WHERE id = :id AND version = :old
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
        )
        return result.rowcount

    def set_payment_intent(self, order_id: UUID, payment_intent_id: str) -> int:
        # set-once: tylko gdy jeszcze nie ustawione i zamowienie nadal PENDING
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.payment_intent_id.is_(None),
                OrderModel.status == OrderStatus.PENDING.value,
            )
            .values(
                payment_intent_id=payment_intent_id,
                updated_at=datetime.now(timezone.utc),
                version=OrderModel.version + 1,
            )
        )
        return result.rowcount

    def mark_review_reminded(self, order_id: UUID, sent_at: datetime) -> int:
        # updated_at bez zmian - od niego liczone jest okno przypomnien
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.review_reminder_sent_at.is_(None))
            .values(review_reminder_sent_at=sent_at)
        )
        return result.rowcount

    def list_user_orders(
        self,
        user_id: int,
        status: OrderStatus | None,
        offset: int,
        limit: int,
    ) -> tuple[list[OrderModel], int]:
        filters = [OrderModel.user_id == user_id]
        if status is not None:
            filters.append(OrderModel.status == status.value)

        total = self.db.execute(
            select(func.count()).select_from(OrderModel).where(*filters)
        ).scalar_one()

        orders = self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(*filters)
            .order_by(OrderModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()

        return list(orders), total

    def find_by_status_updated_before(self, status: OrderStatus, cutoff: datetime) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.status == status.value, OrderModel.updated_at < cutoff)
                .order_by(OrderModel.updated_at)
            ).scalars().all()
        )

    def find_delivered_without_reviews(self, start: datetime, end: datetime) -> list[OrderModel]:
        reviewed = (
            select(ReviewModel.id)
            .join(OrderItemModel, OrderItemModel.product_id == ReviewModel.product_id)
            .where(
                OrderItemModel.order_id == OrderModel.id,
                ReviewModel.user_id == OrderModel.user_id,
            )
        )
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.user))
                .where(
                    and_(
                        OrderModel.status == OrderStatus.DELIVERED.value,
                        OrderModel.updated_at >= start,
                        OrderModel.updated_at <= end,
                        OrderModel.review_reminder_sent_at.is_(None),
                        ~reviewed.exists(),
                    )
                )
                .order_by(OrderModel.updated_at)
            ).scalars().all()
        )

    def count_orders(self) -> int:
        return self.db.execute(select(func.count()).select_from(OrderModel)).scalar_one()

    def count_by_status(self, status: OrderStatus, user_id: int | None = None) -> int:
        stmt = select(func.count()).select_from(OrderModel).where(OrderModel.status == status.value)
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one()

    def count_user_orders(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count()).select_from(OrderModel).where(OrderModel.user_id == user_id)
        ).scalar_one()

    def total_spent_by_user(self, user_id: int) -> Decimal:
        spent = self.db.execute(
            select(func.sum(OrderModel.total)).where(
                OrderModel.user_id == user_id,
                OrderModel.status != OrderStatus.CANCELLED.value,
            )
        ).scalar()
        return Decimal(spent) if spent is not None else Decimal("0.00")

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def refresh(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order
