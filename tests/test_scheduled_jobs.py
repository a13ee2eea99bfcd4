# tests/test_scheduled_jobs.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.data.models import OrderModel, ReviewModel
from app.domain.events import (
    AbandonedCartEvent,
    DailyReportEvent,
    LowStockAlertEvent,
    OrderDeliveredEvent,
    ReviewReminderEvent,
)
from app.domain.order_status import OrderStatus
from app.tasks.scheduled import ScheduledJobs, run_exclusive
from tests.helpers import add_product, add_user, fill_cart, place_order, set_order_state

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def jobs(db, publisher):
    return ScheduledJobs(db, publisher=publisher, now=NOW)


class TestRunExclusive:
    def test_skips_when_previous_run_holds_lock(self, locks):
        locks.acquire_job_lock("auto_deliver")
        calls = []

        result = run_exclusive("auto_deliver", lambda: calls.append(1) or {}, locks=locks)

        assert result == {"job": "auto_deliver", "skipped": True}
        assert calls == []

    def test_runs_and_releases_lock(self, locks, fake_redis):
        result = run_exclusive("daily_report", lambda: {"total_orders": 3}, locks=locks)

        assert result == {"job": "daily_report", "skipped": False, "total_orders": 3}
        assert fake_redis.store == {}

    def test_lock_released_when_job_fails(self, locks, fake_redis):
        def boom():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError):
            run_exclusive("low_stock", boom, locks=locks)

        assert fake_redis.store == {}


class TestAutoDeliver:
    def test_delivers_old_shipped_orders_once(self, db, publisher, jobs):
        order = place_order(db, publisher)
        set_order_state(db, order, OrderStatus.SHIPPED.value, updated_at=NOW - timedelta(days=8))

        first = jobs.auto_deliver()
        second = ScheduledJobs(db, publisher=publisher, now=NOW).auto_deliver()

        assert first == {"found": 1, "delivered": 1, "failed": 0}
        assert second["found"] == 0
        assert db.get(OrderModel, order.id).status == OrderStatus.DELIVERED.value
        assert len(publisher.of_type(OrderDeliveredEvent)) == 1

    def test_recent_shipments_are_left_alone(self, db, publisher, jobs):
        order = place_order(db, publisher)
        set_order_state(db, order, OrderStatus.SHIPPED.value, updated_at=NOW - timedelta(days=2))

        assert jobs.auto_deliver()["found"] == 0
        assert db.get(OrderModel, order.id).status == OrderStatus.SHIPPED.value

    def test_failure_on_one_order_does_not_stop_others(self, db, publisher, jobs, monkeypatch):
        broken = place_order(db, publisher, user_id=1)
        healthy = place_order(db, publisher, user_id=2)
        for order in (broken, healthy):
            set_order_state(db, order, OrderStatus.SHIPPED.value, updated_at=NOW - timedelta(days=10))

        original = jobs.orders.auto_deliver

        def flaky(order_id):
            if order_id == broken.id:
                raise RuntimeError("lock timeout")
            return original(order_id)

        monkeypatch.setattr(jobs.orders, "auto_deliver", flaky)

        result = jobs.auto_deliver()

        assert result == {"found": 2, "delivered": 1, "failed": 1}
        assert db.get(OrderModel, healthy.id).status == OrderStatus.DELIVERED.value
        assert db.get(OrderModel, broken.id).status == OrderStatus.SHIPPED.value


class TestAbandonedCarts:
    def test_notifies_only_stale_non_empty_carts(self, db, publisher, jobs):
        add_user(db, 1)
        add_user(db, 2)
        add_user(db, 3)
        add_product(db, 1, price="4.00")
        fill_cart(db, 1, [(1, 3, "4.00")], updated_at=NOW - timedelta(hours=30))
        fill_cart(db, 2, [(1, 1, "4.00")], updated_at=NOW - timedelta(hours=2))
        fill_cart(db, 3, [], updated_at=NOW - timedelta(days=5))

        result = jobs.abandoned_carts()

        assert result == {"found": 1, "notified": 1, "failed": 0}
        [event] = publisher.of_type(AbandonedCartEvent)
        assert event.user_id == 1
        assert event.cart_total == Decimal("12.00")
        assert event.items[0].product_name == "Product 1"


class TestReviewReminders:
    def _delivered(self, db, publisher, user_id, days_ago):
        order = place_order(db, publisher, user_id=user_id)
        return set_order_state(db, order, OrderStatus.DELIVERED.value, updated_at=NOW - timedelta(days=days_ago))

    def test_reminds_within_window_without_review(self, db, publisher, jobs):
        due = self._delivered(db, publisher, 1, days_ago=5)
        self._delivered(db, publisher, 2, days_ago=1)
        self._delivered(db, publisher, 3, days_ago=20)
        reviewed = self._delivered(db, publisher, 4, days_ago=6)
        db.add(ReviewModel(user_id=4, product_id=reviewed.items[0].product_id, rating=5))
        db.commit()

        result = jobs.review_reminders()

        assert result["found"] == 1
        [event] = publisher.of_type(ReviewReminderEvent)
        assert event.order_number == due.order_number

    def test_each_order_is_reminded_once(self, db, publisher, jobs):
        order = self._delivered(db, publisher, 1, days_ago=5)

        first = jobs.review_reminders()
        second = ScheduledJobs(db, publisher=publisher, now=NOW + timedelta(days=1)).review_reminders()

        assert first["reminded"] == 1
        assert second == {"found": 0, "reminded": 0, "failed": 0}
        assert len(publisher.of_type(ReviewReminderEvent)) == 1
        db.expire_all()
        stored = db.get(OrderModel, order.id)
        assert stored.review_reminder_sent_at is not None
        # okno liczone od updated_at, znacznik go nie przesuwa
        assert stored.updated_at.replace(tzinfo=timezone.utc) == NOW - timedelta(days=5)

    def test_failed_publish_leaves_order_for_next_run(self, db, publisher, jobs, monkeypatch):
        self._delivered(db, publisher, 1, days_ago=5)

        def broken(event):
            raise RuntimeError("broker down")

        with monkeypatch.context() as m:
            m.setattr(publisher, "publish", broken)
            assert jobs.review_reminders()["failed"] == 1

        assert jobs.review_reminders()["reminded"] == 1


class TestLowStock:
    def test_skipped_when_nothing_is_low(self, db, publisher, jobs):
        add_product(db, 1, stock=50)

        result = jobs.low_stock()

        assert result["alerted"] is False
        assert publisher.of_type(LowStockAlertEvent) == []

    def test_single_alert_with_low_and_out(self, db, publisher, jobs):
        add_product(db, 1, stock=3)
        add_product(db, 2, stock=0)
        add_product(db, 3, stock=50)
        add_product(db, 4, stock=0, active=False)

        result = jobs.low_stock()

        assert result == {"low_stock": 1, "out_of_stock": 1, "alerted": True}
        [event] = publisher.of_type(LowStockAlertEvent)
        assert [p.name for p in event.low_stock_products] == ["Product 1"]
        assert [p.stock_quantity for p in event.out_of_stock_products] == [0]


class TestDailyReport:
    def test_reports_counts(self, db, publisher, jobs):
        first = place_order(db, publisher, user_id=1, stock=5)
        place_order(db, publisher, user_id=2, stock=50)
        set_order_state(db, first, OrderStatus.PAID.value)

        result = jobs.daily_report()

        # produkt usera 1 ma 4 sztuki po zamowieniu
        assert result == {"total_orders": 2, "pending_orders": 1, "low_stock_count": 1}
        assert len(publisher.of_type(DailyReportEvent)) == 1
