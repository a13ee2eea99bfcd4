# app/utils/retry.py
import logging

import redis
import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.utils.logging import get_logger
from app.utils.settings import GATEWAY_RETRY_ATTEMPTS, REDIS_RETRY_ATTEMPTS

logger = get_logger(__name__)


def _is_transient_http_error(exc: BaseException) -> bool:
    # zerwane polaczenie, timeout, 429 albo 5xx; pozostale 4xx to blad zadania
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


def http_retry(attempts: int = GATEWAY_RETRY_ATTEMPTS):
    """Ponawianie wywolan bramki. Bezpieczne tylko z Idempotency-Key."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(_is_transient_http_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def redis_retry(attempts: int = REDIS_RETRY_ATTEMPTS):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.ConnectionError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
