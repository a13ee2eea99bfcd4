# app/services/payment_gateway.py
import hashlib
import hmac
import json
import time

import requests
from requests import RequestException

from app.domain.errors import InvalidSignatureError, PaymentGatewayError, ValidationError
from app.utils.retry import http_retry
from app.utils.settings import (
    GATEWAY_TIMEOUT_SECONDS,
    STRIPE_API_BASE,
    STRIPE_API_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_WEBHOOK_TOLERANCE_SECONDS,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)


def compute_signature(payload: bytes | str, secret: str, timestamp: int) -> str:
    raw = payload.encode("utf-8") if isinstance(payload, str) else payload
    signed = f"{timestamp}.".encode("utf-8") + raw
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def _parse_signature_header(header: str) -> tuple[int, list[str]]:
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise InvalidSignatureError("Invalid webhook signature") from None
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        raise InvalidSignatureError("Invalid webhook signature")
    return timestamp, signatures


def verify_signature(
    payload: bytes | str,
    header: str | None,
    secret: str,
    tolerance: int = STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """
    Naglowek w formacie Stripe: t=<unix>,v1=<hex hmac-sha256("<t>.<payload>")>.
    Rzuca InvalidSignatureError, niczego nie zwraca.
    """
    if not secret:
        logger.error("Webhook secret is not configured")
        raise InvalidSignatureError("Invalid webhook signature")
    if not header:
        raise InvalidSignatureError("Missing webhook signature")

    timestamp, signatures = _parse_signature_header(header)
    expected = compute_signature(payload, secret, timestamp)

    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        logger.warning("Webhook signature mismatch")
        raise InvalidSignatureError("Invalid webhook signature")

    now = time.time() if now is None else now
    if tolerance and abs(now - timestamp) > tolerance:
        logger.warning(f"Webhook timestamp {timestamp} outside tolerance")
        raise InvalidSignatureError("Webhook timestamp outside the tolerance zone")


class StripeClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        webhook_secret: str | None = None,
        timeout: int = GATEWAY_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key if api_key is not None else STRIPE_API_KEY
        self.base_url = (base_url or STRIPE_API_BASE).rstrip("/")
        self.webhook_secret = webhook_secret if webhook_secret is not None else STRIPE_WEBHOOK_SECRET
        self.timeout = timeout
        self.session = session or requests.Session()

    @http_retry()
    def _post(self, path: str, data: dict, idempotency_key: str) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"StripeClient POST {url}")

        resp = self.session.post(
            url,
            data=data,
            auth=(self.api_key, ""),
            headers={"Idempotency-Key": idempotency_key},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def create_payment_intent(self, amount: int, currency: str, metadata: dict, idempotency_key: str) -> dict:
        data = {
            "amount": amount,
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = value

        try:
            return self._post("/v1/payment_intents", data, idempotency_key)
        except RequestException as e:
            logger.error(f"Stripe error while creating payment intent: {e}")
            raise PaymentGatewayError(f"Failed to create payment intent: {e}") from e

    def construct_event(self, payload: bytes | str, signature_header: str | None) -> dict:
        # najpierw podpis (po surowych bajtach), dopiero potem dekodowanie
        verify_signature(payload, signature_header, self.webhook_secret)

        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            event = json.loads(payload)
        except ValueError:
            raise ValidationError("Malformed webhook payload") from None

        if not isinstance(event, dict):
            raise ValidationError("Malformed webhook payload")
        return event
