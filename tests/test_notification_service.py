# tests/test_notification_service.py
from decimal import Decimal

import pytest

from app.domain import events as ev
from app.services import notification_service
from app.services.notification_service import EventPublisher, NotificationDispatcher, dispatch_event_task
from app.services.preferences_service import PreferencesService
from tests.helpers import FakeSender, add_user


def _placed(user_id=1, email="user1@example.com"):
    return ev.OrderPlacedEvent(
        order_number="ORD-20240615-00042",
        user_id=user_id,
        user_email=email,
        user_first_name="Jan",
        total_amount=Decimal("25.50"),
    )


def _price_drop(*users):
    return ev.PriceDropEvent(
        product_name="Kubek",
        old_price=Decimal("20.00"),
        new_price=Decimal("15.00"),
        interested_users=[
            ev.UserNotificationData(user_id=u, email=f"user{u}@example.com", first_name="Ola") for u in users
        ],
    )


@pytest.fixture
def dispatcher(db, sender):
    return NotificationDispatcher(db, sender=sender, admin_email="admin@example.com")


class TestDispatch:
    def test_sends_when_flag_enabled(self, db, dispatcher, sender):
        add_user(db, 1)

        assert dispatcher.dispatch(_placed()) == 1
        to, subject, body = sender.sent[0]
        assert to == "user1@example.com"
        assert "ORD-20240615-00042" in subject
        assert "25.50" in body

    def test_disabled_flag_drops_notification(self, db, dispatcher, sender):
        add_user(db, 1)
        PreferencesService(db).update_preferences(1, {"order_updates": False})

        assert dispatcher.dispatch(_placed()) == 0
        assert sender.sent == []

    def test_other_flags_do_not_gate(self, db, dispatcher, sender):
        add_user(db, 1)
        PreferencesService(db).update_preferences(1, {"shipping_notifications": False})

        assert dispatcher.dispatch(_placed()) == 1

    def test_send_failure_is_swallowed(self, db):
        add_user(db, 1)
        dispatcher = NotificationDispatcher(db, sender=FakeSender(fail_for={"user1@example.com"}))

        assert dispatcher.dispatch(_placed()) == 0

    def test_recipients_are_independent(self, db, dispatcher, sender):
        for user_id in (1, 2, 3):
            add_user(db, user_id)
        PreferencesService(db).update_preferences(1, {"price_drop_alerts": False})

        assert dispatcher.dispatch(_price_drop(1, 2, 3)) == 2
        assert [to for to, _, _ in sender.sent] == ["user2@example.com", "user3@example.com"]

    def test_failing_recipient_does_not_block_the_rest(self, db):
        for user_id in (1, 2):
            add_user(db, user_id)
        sender = FakeSender(fail_for={"user1@example.com"})
        dispatcher = NotificationDispatcher(db, sender=sender)

        assert dispatcher.dispatch(_price_drop(1, 2)) == 1
        assert sender.sent[0][0] == "user2@example.com"

    def test_admin_events_go_to_admin(self, dispatcher, sender):
        event = ev.LowStockAlertEvent(
            low_stock_products=[ev.ProductStockData(name="Kubek", stock_quantity=2)],
            out_of_stock_products=[],
        )

        assert dispatcher.dispatch(event) == 1
        assert sender.sent[0][0] == "admin@example.com"

    def test_daily_report(self, dispatcher, sender):
        assert dispatcher.dispatch(ev.DailyReportEvent(total_orders=7, pending_orders=2, low_stock_count=1)) == 1
        assert "7" in sender.sent[0][2]


class TestEventPublisher:
    def test_enqueues_serialized_event(self, monkeypatch):
        calls = []
        monkeypatch.setattr(dispatch_event_task, "delay", lambda *args: calls.append(args))

        EventPublisher().publish(_placed())

        event_type, payload = calls[0]
        assert event_type == "order_placed"
        assert payload["order_number"] == "ORD-20240615-00042"

    def test_broker_failure_is_swallowed(self, monkeypatch):
        def broken(*args):
            raise ConnectionError("broker down")

        monkeypatch.setattr(dispatch_event_task, "delay", broken)

        EventPublisher().publish(_placed())


class TestDispatchTask:
    def test_unknown_event_type_is_dropped(self):
        assert dispatch_event_task("mystery", {}) == {"event_type": "mystery", "sent": 0}

    def test_runs_dispatcher_with_own_session(self, db, monkeypatch):
        add_user(db, 1)
        sender = FakeSender()
        monkeypatch.setattr(notification_service, "EmailSender", lambda: sender)

        event_type, payload = ev.serialize_event(_placed())
        result = dispatch_event_task(event_type, payload)

        assert result == {"event_type": "order_placed", "sent": 1}
        assert sender.sent[0][0] == "user1@example.com"


class TestEventSerialization:
    def test_deserialize_restores_decimal(self):
        event_type, payload = ev.serialize_event(_placed())

        restored = ev.deserialize_event(event_type, payload)

        assert restored == _placed()
        assert isinstance(restored.total_amount, Decimal)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            ev.deserialize_event("nope", {})
