# app/celery_worker.py
from celery import Celery

from app.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_CONCURRENCY,
    ABANDONED_CART_INTERVAL,
    AUTO_DELIVER_INTERVAL,
    REVIEW_REMINDER_INTERVAL,
    LOW_STOCK_INTERVAL,
    DAILY_REPORT_INTERVAL,
)

celery_app = Celery(
    "shop",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "app.tasks.scheduled",
    "app.services.notification_service",
)

# maly, staly pool - webhooki obsluguje API, tu tylko joby i dispatch
celery_app.conf.worker_concurrency = CELERY_CONCURRENCY
celery_app.conf.worker_prefetch_multiplier = 1

# Konfiguracja beat schedule
celery_app.conf.beat_schedule = {
    "abandoned-carts": {
        "task": "app.tasks.scheduled.abandoned_carts_task",
        "schedule": ABANDONED_CART_INTERVAL,
    },
    "auto-deliver-shipped-orders": {
        "task": "app.tasks.scheduled.auto_deliver_task",
        "schedule": AUTO_DELIVER_INTERVAL,
    },
    "review-reminders": {
        "task": "app.tasks.scheduled.review_reminders_task",
        "schedule": REVIEW_REMINDER_INTERVAL,
    },
    "low-stock-check": {
        "task": "app.tasks.scheduled.low_stock_task",
        "schedule": LOW_STOCK_INTERVAL,
    },
    "daily-report": {
        "task": "app.tasks.scheduled.daily_report_task",
        "schedule": DAILY_REPORT_INTERVAL,
    },
}

celery_app.conf.timezone = "UTC"
