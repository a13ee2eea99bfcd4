# app/tasks/scheduled.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy.orm import Session

from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.domain.events import (
    AbandonedCartEvent,
    CartItemData,
    DailyReportEvent,
    LowStockAlertEvent,
    ProductStockData,
    ReviewReminderEvent,
)
from app.services.cart_service import CartService
from app.services.lock_service import LockService
from app.services.notification_service import EventPublisher
from app.services.order_service import OrderService
from app.services.product_service import ProductService
from app.utils.settings import (
    ABANDONED_CART_HOURS,
    AUTO_DELIVER_DAYS,
    LOW_STOCK_THRESHOLD,
    REVIEW_REMINDER_MAX_DAYS,
    REVIEW_REMINDER_MIN_DAYS,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)
lock_service = LockService()


def run_exclusive(job_name: str, job: Callable[[], dict], locks: LockService | None = None) -> dict:
    """
    Skip-if-running: jesli poprzedni przebieg trzyma lock, nic nie robimy.
    """
    locks = locks or lock_service
    token = locks.acquire_job_lock(job_name)
    if token is None:
        logger.info(f"Job {job_name} still running elsewhere, skipping this run")
        return {"job": job_name, "skipped": True}

    try:
        summary = job()
    finally:
        locks.release_job_lock(job_name, token)

    return {"job": job_name, "skipped": False, **summary}


class ScheduledJobs:
    """
    Okresowe joby. Kazdy rekord w osobnym try/except -
    blad jednego nie przerywa przetwarzania reszty.
    """

    def __init__(self, db: Session, publisher=None, now: datetime | None = None):
        self.db = db
        self.publisher = publisher or EventPublisher()
        self.now = now or datetime.now(timezone.utc)
        self.carts = CartService(db)
        self.orders = OrderService(db, publisher=self.publisher)
        self.products = ProductService(db, publisher=self.publisher)

    def abandoned_carts(self) -> dict:
        cutoff = self.now - timedelta(hours=ABANDONED_CART_HOURS)
        carts = self.carts.find_abandoned(cutoff)
        logger.info(f"Found {len(carts)} abandoned carts")

        notified = failed = 0
        for cart in carts:
            try:
                items = [
                    CartItemData(product_name=i.product.name, quantity=i.quantity, price=i.price)
                    for i in cart.items
                ]
                self.publisher.publish(
                    AbandonedCartEvent(
                        user_id=cart.user.id,
                        user_email=cart.user.email,
                        user_first_name=cart.user.first_name,
                        items=items,
                        cart_total=sum((i.price * i.quantity for i in items), Decimal("0.00")),
                    )
                )
                notified += 1
            except Exception:
                failed += 1
                logger.exception(f"Failed to process abandoned cart {cart.id}")

        return {"found": len(carts), "notified": notified, "failed": failed}

    def auto_deliver(self) -> dict:
        cutoff = self.now - timedelta(days=AUTO_DELIVER_DAYS)
        # najpierw id, potem kazde zamowienie we wlasnej transakcji
        order_ids = [o.id for o in self.orders.find_orders_for_auto_delivery(cutoff)]
        logger.info(f"Found {len(order_ids)} orders to auto-deliver")

        delivered = failed = 0
        for order_id in order_ids:
            try:
                if self.orders.auto_deliver(order_id):
                    delivered += 1
            except Exception:
                failed += 1
                self.db.rollback()
                logger.exception(f"Failed to auto-deliver order {order_id}")

        return {"found": len(order_ids), "delivered": delivered, "failed": failed}

    def review_reminders(self) -> dict:
        start = self.now - timedelta(days=REVIEW_REMINDER_MAX_DAYS)
        end = self.now - timedelta(days=REVIEW_REMINDER_MIN_DAYS)
        orders = self.orders.find_delivered_without_reviews(start, end)
        logger.info(f"Found {len(orders)} delivered orders without reviews")

        sent = failed = 0
        for order in orders:
            try:
                self.publisher.publish(
                    ReviewReminderEvent(
                        order_number=order.order_number,
                        user_id=order.user.id,
                        user_email=order.user.email,
                        user_first_name=order.user.first_name,
                    )
                )
                # znacznik dopiero po publikacji
                self.orders.mark_review_reminded(order.id, self.now)
                sent += 1
            except Exception:
                failed += 1
                self.db.rollback()
                logger.exception(f"Failed to send review reminder for order {order.order_number}")

        return {"found": len(orders), "reminded": sent, "failed": failed}

    def low_stock(self) -> dict:
        low = self.products.find_low_stock(LOW_STOCK_THRESHOLD)
        out = self.products.find_out_of_stock()

        if not low and not out:
            logger.info("No low stock products, alert skipped")
            return {"low_stock": 0, "out_of_stock": 0, "alerted": False}

        self.publisher.publish(
            LowStockAlertEvent(
                low_stock_products=[ProductStockData(name=p.name, stock_quantity=p.stock_quantity) for p in low],
                out_of_stock_products=[ProductStockData(name=p.name, stock_quantity=p.stock_quantity) for p in out],
            )
        )
        logger.info(f"Low stock alert: {len(low)} low, {len(out)} out of stock")
        return {"low_stock": len(low), "out_of_stock": len(out), "alerted": True}

    def daily_report(self) -> dict:
        report = {
            "total_orders": self.orders.count_orders(),
            "pending_orders": self.orders.count_pending_orders(),
            "low_stock_count": self.products.count_low_stock(LOW_STOCK_THRESHOLD),
        }
        self.publisher.publish(DailyReportEvent(**report))
        logger.info(f"Daily report generated: {report}")
        return report


def _run_job(job_name: str, method: str) -> dict:
    logger.info(f"{job_name} task started")

    def job() -> dict:
        db = SessionLocal()
        try:
            return getattr(ScheduledJobs(db), method)()
        finally:
            db.close()

    result = run_exclusive(job_name, job)
    logger.info(f"{job_name} task finished: {result}")
    return result


@celery_app.task(name="app.tasks.scheduled.abandoned_carts_task")
def abandoned_carts_task():
    return _run_job("abandoned_carts", "abandoned_carts")


@celery_app.task(name="app.tasks.scheduled.auto_deliver_task")
def auto_deliver_task():
    return _run_job("auto_deliver", "auto_deliver")


@celery_app.task(name="app.tasks.scheduled.review_reminders_task")
def review_reminders_task():
    return _run_job("review_reminders", "review_reminders")


@celery_app.task(name="app.tasks.scheduled.low_stock_task")
def low_stock_task():
    return _run_job("low_stock", "low_stock")


@celery_app.task(name="app.tasks.scheduled.daily_report_task")
def daily_report_task():
    return _run_job("daily_report", "daily_report")
