# tests/test_payment_service.py
import json
import time
from decimal import Decimal

import pytest

from app.data.models import OrderModel
from app.domain.errors import (
    InvalidOrderStateError,
    InvalidSignatureError,
    PaymentGatewayError,
    UnknownPaymentReferenceError,
    ValidationError,
)
from app.domain.events import OrderCancelledEvent
from app.domain.order_status import OrderStatus
from app.services.payment_gateway import StripeClient, compute_signature, verify_signature
from app.services.payment_service import PaymentService, to_minor_units
from tests.helpers import FakeHttpSession, add_user, place_order, set_order_state

SECRET = "whsec_test_secret"


def _event(event_type, payment_intent_id, event_id="evt_1"):
    return {"id": event_id, "type": event_type, "data": {"object": {"id": payment_intent_id}}}


def _signed(payload, secret=SECRET, timestamp=None):
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"


@pytest.fixture
def service(db, publisher, gateway, registry):
    return PaymentService(db, gateway=gateway, registry=registry, publisher=publisher)


@pytest.fixture
def order_with_intent(db, publisher, service):
    order = place_order(db, publisher, quantity=2, price="12.75")
    service.create_payment_intent(1, order.id)
    return db.get(OrderModel, order.id)


class TestMinorUnits:
    def test_rounds_half_up(self):
        assert to_minor_units(Decimal("25.50")) == 2550
        assert to_minor_units(Decimal("0.005")) == 1
        assert to_minor_units(Decimal("19.99")) == 1999


class TestCreatePaymentIntent:
    def test_creates_and_stores_reference(self, db, publisher, service, gateway):
        order = place_order(db, publisher, quantity=2, price="12.75")

        result = service.create_payment_intent(1, order.id)

        assert result["payment_intent_id"] == "pi_test_123"
        assert result["amount"] == 2550
        assert result["client_secret"] == "pi_test_123_secret"
        call = gateway.calls[0]
        assert call["idempotency_key"] == f"order-{order.id}"
        assert call["metadata"]["order_id"] == str(order.id)
        assert db.get(OrderModel, order.id).payment_intent_id == "pi_test_123"

    def test_order_in_session_reflects_stored_reference(self, db, publisher, service):
        order = place_order(db, publisher)

        service.create_payment_intent(1, order.id)

        # ten sam obiekt z identity map, bez expire_all
        assert order.payment_intent_id == "pi_test_123"
        assert order.version == 2

    def test_reference_is_set_once(self, db, service, order_with_intent):
        with pytest.raises(InvalidOrderStateError):
            service.create_payment_intent(1, order_with_intent.id)

    def test_only_pending_orders(self, db, publisher, service):
        order = place_order(db, publisher)
        set_order_state(db, order, OrderStatus.PROCESSING.value)

        with pytest.raises(InvalidOrderStateError):
            service.create_payment_intent(1, order.id)

    def test_other_user_is_rejected(self, db, publisher, service):
        order = place_order(db, publisher)
        add_user(db, 2)

        with pytest.raises(PermissionError):
            service.create_payment_intent(2, order.id)


class TestHandleWebhookEvent:
    def test_succeeded_marks_paid(self, db, service, order_with_intent):
        result = service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123"))

        assert result == "applied"
        assert db.get(OrderModel, order_with_intent.id).status == OrderStatus.PAID.value

    def test_duplicate_event_is_skipped(self, db, service, order_with_intent):
        event = _event("payment_intent.succeeded", "pi_test_123")
        service.handle_webhook_event(event)

        assert service.handle_webhook_event(event) == "duplicate"
        assert db.get(OrderModel, order_with_intent.id).version == 3

    def test_redelivery_with_new_id_is_noop(self, db, service, order_with_intent):
        service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123", "evt_1"))

        assert service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123", "evt_2")) == "noop"

    def test_late_processing_does_not_regress_paid(self, db, service, order_with_intent):
        service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123", "evt_1"))

        result = service.handle_webhook_event(_event("payment_intent.processing", "pi_test_123", "evt_2"))

        assert result == "stale"
        assert db.get(OrderModel, order_with_intent.id).status == OrderStatus.PAID.value

    def test_canceled_after_paid_is_stale(self, db, service, order_with_intent):
        service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123", "evt_1"))

        assert service.handle_webhook_event(_event("payment_intent.canceled", "pi_test_123", "evt_2")) == "stale"

    def test_canceled_while_pending(self, db, service, publisher, order_with_intent):
        result = service.handle_webhook_event(_event("payment_intent.canceled", "pi_test_123"))

        assert result == "applied"
        assert db.get(OrderModel, order_with_intent.id).status == OrderStatus.CANCELLED.value
        assert len(publisher.of_type(OrderCancelledEvent)) == 1

    def test_processing_cannot_skip_paid(self, db, service, order_with_intent):
        # PENDING -> PROCESSING nie istnieje, processing przed zaplata jest tylko potwierdzany
        result = service.handle_webhook_event(_event("payment_intent.processing", "pi_test_123", "evt_1"))

        assert result == "stale"
        assert db.get(OrderModel, order_with_intent.id).status == OrderStatus.PENDING.value
        assert service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123", "evt_2")) == "applied"
        assert db.get(OrderModel, order_with_intent.id).status == OrderStatus.PAID.value

    def test_unknown_type_is_ignored_without_record(self, service, fake_redis):
        assert service.handle_webhook_event(_event("charge.refunded", "pi_x")) == "ignored"
        assert fake_redis.store == {}

    def test_unknown_reference_is_not_recorded(self, service, fake_redis):
        with pytest.raises(UnknownPaymentReferenceError):
            service.handle_webhook_event(_event("payment_intent.succeeded", "pi_missing", "evt_9"))

        assert "webhook:event:evt_9" not in fake_redis.store

    def test_event_is_recorded_after_commit(self, db, service, fake_redis, order_with_intent):
        service.handle_webhook_event(_event("payment_intent.succeeded", "pi_test_123", "evt_5"))

        assert fake_redis.store["webhook:event:evt_5"] == "applied"

    def test_killed_worker_allows_redelivery(self, db, service, fake_redis, order_with_intent, monkeypatch):
        class WorkerKilled(BaseException):
            pass

        def killed(*args, **kwargs):
            raise WorkerKilled()

        event = _event("payment_intent.succeeded", "pi_test_123", "evt_7")
        with monkeypatch.context() as m:
            m.setattr(service.orders, "transition", killed)
            with pytest.raises(WorkerKilled):
                service.handle_webhook_event(event)

        assert "webhook:event:evt_7" not in fake_redis.store
        db.rollback()

        assert service.handle_webhook_event(event) == "applied"
        assert db.get(OrderModel, order_with_intent.id).status == OrderStatus.PAID.value
        assert service.handle_webhook_event(event) == "duplicate"

    def test_malformed_event(self, service):
        with pytest.raises(ValidationError):
            service.handle_webhook_event({"id": "evt_1", "type": "payment_intent.succeeded", "data": {}})


class TestSignature:
    def test_valid_signature(self):
        payload = '{"id": "evt_1"}'
        verify_signature(payload, _signed(payload), SECRET)

    def test_tampered_payload(self):
        header = _signed('{"id": "evt_1"}')
        with pytest.raises(InvalidSignatureError):
            verify_signature('{"id": "evt_2"}', header, SECRET)

    def test_wrong_secret(self):
        payload = '{"id": "evt_1"}'
        with pytest.raises(InvalidSignatureError):
            verify_signature(payload, _signed(payload, secret="other"), SECRET)

    def test_timestamp_outside_tolerance(self):
        payload = '{"id": "evt_1"}'
        old = int(time.time()) - 301
        with pytest.raises(InvalidSignatureError):
            verify_signature(payload, _signed(payload, timestamp=old), SECRET, tolerance=300)

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=00", "t=123"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(InvalidSignatureError):
            verify_signature("{}", header, SECRET)

    def test_missing_secret(self):
        with pytest.raises(InvalidSignatureError):
            verify_signature("{}", _signed("{}"), "")


class TestStripeClient:
    def test_construct_event_parses_after_verification(self):
        client = StripeClient(api_key="sk_test", webhook_secret=SECRET, session=FakeHttpSession())
        payload = json.dumps(_event("payment_intent.succeeded", "pi_1"))

        event = client.construct_event(payload, _signed(payload))

        assert event["type"] == "payment_intent.succeeded"

    def test_construct_event_rejects_bad_json(self):
        client = StripeClient(api_key="sk_test", webhook_secret=SECRET, session=FakeHttpSession())

        with pytest.raises(ValidationError):
            client.construct_event("not json", _signed("not json"))

    def test_construct_event_verifies_raw_bytes(self):
        client = StripeClient(api_key="sk_test", webhook_secret=SECRET, session=FakeHttpSession())
        payload = json.dumps(_event("payment_intent.succeeded", "pi_1")).encode("utf-8")

        event = client.construct_event(payload, _signed(payload))

        assert event["id"] == "evt_1"

    def test_construct_event_rejects_signed_non_utf8_body(self):
        client = StripeClient(api_key="sk_test", webhook_secret=SECRET, session=FakeHttpSession())
        payload = b"\xff\xfe\x00garbage"

        with pytest.raises(ValidationError):
            client.construct_event(payload, _signed(payload))

    def test_create_payment_intent_posts_form(self):
        session = FakeHttpSession(intent_id="pi_http_7")
        client = StripeClient(api_key="sk_test", base_url="https://stripe.test", session=session)

        intent = client.create_payment_intent(2550, "usd", {"order_id": "abc"}, "order-abc")

        assert intent["id"] == "pi_http_7"
        sent = session.requests[0]
        assert sent["url"] == "https://stripe.test/v1/payment_intents"
        assert sent["auth"] == ("sk_test", "")
        assert sent["headers"] == {"Idempotency-Key": "order-abc"}
        assert sent["data"]["metadata[order_id]"] == "abc"

    def test_client_error_is_not_retried(self):
        session = FakeHttpSession(status_code=400)
        client = StripeClient(api_key="sk_test", session=session)

        with pytest.raises(PaymentGatewayError):
            client.create_payment_intent(100, "usd", {}, "order-x")

        assert len(session.requests) == 1

    def test_server_error_is_retried_then_reported(self):
        session = FakeHttpSession(status_code=503)
        client = StripeClient(api_key="sk_test", session=session)

        with pytest.raises(PaymentGatewayError):
            client.create_payment_intent(100, "usd", {}, "order-x")

        assert len(session.requests) == 3
        assert {r["headers"]["Idempotency-Key"] for r in session.requests} == {"order-x"}
