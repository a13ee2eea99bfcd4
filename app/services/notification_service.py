# app/services/notification_service.py
from typing import Callable

from sqlalchemy.orm import Session

from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.domain import events as ev
from app.services import email_templates as templates
from app.services.email_service import EmailSender
from app.services.preferences_service import PreferencesService
from app.utils.settings import ADMIN_EMAIL, NOTIFICATION_TASK_SOFT_LIMIT
from app.utils.logging import get_logger

logger = get_logger(__name__)


class EventPublisher:
    """
    Publikacja zdarzen - kolejka Celery, nigdy nie blokuje wywolujacego.
    Wolane PO commicie transakcji biznesowej.
    """

    def publish(self, event: ev.LifecycleEvent) -> None:
        event_type, payload = ev.serialize_event(event)
        try:
            dispatch_event_task.delay(event_type, payload)
            logger.info(f"Published {event_type}")
        except Exception:
            # broker niedostepny - powiadomienie przepada, operacja biznesowa juz zatwierdzona
            logger.exception(f"Failed to enqueue {event_type}")


class NotificationDispatcher:
    """
    Obsluga zdarzen: sprawdzenie flagi w preferencjach uzytkownika,
    render tresci, wysylka. Bledy logowane i polykane (at-most-once, bez retry).
    """

    def __init__(self, db: Session, sender: EmailSender | None = None, admin_email: str = ADMIN_EMAIL):
        self.preferences = PreferencesService(db)
        self.sender = sender or EmailSender()
        self.admin_email = admin_email
        self._handlers: dict[type, Callable[..., int]] = {
            ev.OrderPlacedEvent: self._on_order_placed,
            ev.OrderShippedEvent: self._on_order_shipped,
            ev.OrderDeliveredEvent: self._on_order_delivered,
            ev.OrderCancelledEvent: self._on_order_cancelled,
            ev.ReviewReminderEvent: self._on_review_reminder,
            ev.AbandonedCartEvent: self._on_abandoned_cart,
            ev.PriceDropEvent: self._on_price_drop,
            ev.ProductRestockedEvent: self._on_product_restocked,
            ev.AccountSecurityEvent: self._on_account_security,
            ev.PasswordResetEvent: self._on_password_reset,
            ev.LowStockAlertEvent: self._on_low_stock,
            ev.DailyReportEvent: self._on_daily_report,
        }

    def dispatch(self, event: ev.LifecycleEvent) -> int:
        """Zwraca liczbe wyslanych wiadomosci."""
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning(f"No notification handler for {type(event).__name__}")
            return 0

        logger.info(f"Handling {type(event).__name__}")
        try:
            return handler(event)
        except Exception:
            logger.exception(f"Failed to handle {type(event).__name__}")
            return 0

    #helpers

    def _send(self, to: str, subject: str, body: str) -> bool:
        try:
            return bool(self.sender.send(to, subject, body))
        except Exception:
            logger.exception(f"Send channel failed for {to}")
            return False

    def _notify_user(self, user_id: int, email: str, flag: str, render: Callable[[], tuple[str, str]]) -> int:
        try:
            prefs = self.preferences.get_preferences(user_id)
            if not getattr(prefs, flag):
                logger.info(f"User {email} has disabled {flag}, notification dropped")
                return 0

            subject, body = render()
            return int(self._send(email, subject, body))
        except Exception:
            logger.exception(f"Failed to notify user {user_id} ({flag})")
            return 0

    def _notify_admin(self, render: Callable[[], tuple[str, str]]) -> int:
        subject, body = render()
        return int(self._send(self.admin_email, subject, body))

    #handlers

    def _on_order_placed(self, e: ev.OrderPlacedEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "order_updates",
            lambda: templates.order_confirmation(e.user_first_name, e.order_number, e.total_amount),
        )

    def _on_order_shipped(self, e: ev.OrderShippedEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "shipping_notifications",
            lambda: templates.order_shipped(e.user_first_name, e.order_number, e.tracking_number),
        )

    def _on_order_delivered(self, e: ev.OrderDeliveredEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "shipping_notifications",
            lambda: templates.order_delivered(e.user_first_name, e.order_number),
        )

    def _on_order_cancelled(self, e: ev.OrderCancelledEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "order_updates",
            lambda: templates.order_cancelled(e.user_first_name, e.order_number, e.total_amount),
        )

    def _on_review_reminder(self, e: ev.ReviewReminderEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "review_reminders",
            lambda: templates.review_reminder(e.user_first_name, e.order_number),
        )

    def _on_abandoned_cart(self, e: ev.AbandonedCartEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "promotional_emails",
            lambda: templates.abandoned_cart(e.user_first_name, e.items, e.cart_total),
        )

    def _on_account_security(self, e: ev.AccountSecurityEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "account_security_alerts",
            lambda: templates.security_alert(e.user_first_name, e.alert_type, e.details),
        )

    def _on_password_reset(self, e: ev.PasswordResetEvent) -> int:
        return self._notify_user(
            e.user_id, e.user_email, "password_reset_emails",
            lambda: templates.password_reset(e.user_first_name, e.reset_token),
        )

    # wielu odbiorcow - kazdy niezaleznie, blad jednego nie blokuje reszty
    def _on_price_drop(self, e: ev.PriceDropEvent) -> int:
        sent = 0
        for user in e.interested_users:
            sent += self._notify_user(
                user.user_id, user.email, "price_drop_alerts",
                lambda user=user: templates.price_drop(user.first_name, e.product_name, e.old_price, e.new_price),
            )
        return sent

    def _on_product_restocked(self, e: ev.ProductRestockedEvent) -> int:
        sent = 0
        for user in e.interested_users:
            sent += self._notify_user(
                user.user_id, user.email, "back_in_stock_alerts",
                lambda user=user: templates.restock(user.first_name, e.product_name),
            )
        return sent

    def _on_low_stock(self, e: ev.LowStockAlertEvent) -> int:
        return self._notify_admin(
            lambda: templates.low_stock_alert(e.low_stock_products, e.out_of_stock_products)
        )

    def _on_daily_report(self, e: ev.DailyReportEvent) -> int:
        return self._notify_admin(
            lambda: templates.daily_report(e.total_orders, e.pending_orders, e.low_stock_count)
        )


@celery_app.task(
    name="app.services.notification_service.dispatch_event_task",
    soft_time_limit=NOTIFICATION_TASK_SOFT_LIMIT,
    ignore_result=True,
)
def dispatch_event_task(event_type: str, payload: dict):
    """
    Celery task - konsument zdarzen. Bez retry: wysylka at-most-once.
    """
    try:
        event = ev.deserialize_event(event_type, payload)
    except ValueError as e:
        logger.error(f"[NOTIFICATION] Dropping malformed event {event_type}: {e}")
        return {"event_type": event_type, "sent": 0}

    db = SessionLocal()
    try:
        sent = NotificationDispatcher(db).dispatch(event)
    finally:
        db.close()

    logger.info(f"[NOTIFICATION] {event_type}: {sent} message(s) sent")
    return {"event_type": event_type, "sent": sent}
