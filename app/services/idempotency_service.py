# app/services/idempotency_service.py
import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL, WEBHOOK_EVENT_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class WebhookEventRegistry:
    """
    Rejestr przetworzonych eventow webhooka (at-least-once delivery).
    Klucz w redisie z TTL, wspolny dla wszystkich instancji serwisu.

    Event zapisywany dopiero po commicie przejscia - padniety worker
    nie zostawia znacznika, wiec retry z bramki zostanie przetworzony.
    Rownolegle duplikaty rozstrzyga ledger (ten sam status -> no-op).
    """

    def __init__(self, url: str | None = None, client=None, ttl: int = WEBHOOK_EVENT_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(event_id: str) -> str:
        return f"webhook:event:{event_id}"

    @redis_retry()
    def is_processed(self, event_id: str) -> bool:
        return bool(self.redis.exists(self._key(event_id)))

    @redis_retry()
    def mark_processed(self, event_id: str, result: str) -> None:
        self.redis.set(name=self._key(event_id), value=result, ex=self.ttl)
        logger.info(f"Webhook event {event_id} recorded as {result}")
