from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer

from app.data.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


# nazwy flag - jedna na kategorie powiadomien
PREFERENCE_FLAGS = (
    "order_updates",
    "shipping_notifications",
    "promotional_emails",
    "newsletter",
    "product_recommendations",
    "price_drop_alerts",
    "back_in_stock_alerts",
    "account_security_alerts",
    "password_reset_emails",
    "review_reminders",
)


class NotificationPreferencesModel(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    order_updates = Column(Boolean, nullable=False, default=True)
    shipping_notifications = Column(Boolean, nullable=False, default=True)
    promotional_emails = Column(Boolean, nullable=False, default=True)
    newsletter = Column(Boolean, nullable=False, default=True)
    product_recommendations = Column(Boolean, nullable=False, default=True)
    price_drop_alerts = Column(Boolean, nullable=False, default=True)
    back_in_stock_alerts = Column(Boolean, nullable=False, default=True)
    account_security_alerts = Column(Boolean, nullable=False, default=True)
    password_reset_emails = Column(Boolean, nullable=False, default=True)
    review_reminders = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
