# app/services/preferences_service.py
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.notification_preferences import NotificationPreferencesModel, PREFERENCE_FLAGS
from app.domain.errors import ValidationError
from app.repos.preferences_repo import PreferencesRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class PreferencesService:
    def __init__(self, db: Session):
        self.repo = PreferencesRepo(db)

    def get_preferences(self, user_id: int) -> NotificationPreferencesModel:
        """Get-or-create: brak wiersza -> domyslne preferencje (wszystko wlaczone)."""
        prefs = self.repo.get_by_user(user_id)
        if prefs:
            return prefs

        logger.info(f"Creating default notification preferences for user {user_id}")
        try:
            return self.repo.create(
                NotificationPreferencesModel(user_id=user_id, **{flag: True for flag in PREFERENCE_FLAGS})
            )
        except IntegrityError:
            # rownolegle utworzenie przez inny request/worker
            self.repo.rollback()
            prefs = self.repo.get_by_user(user_id)
            if prefs is None:
                raise
            return prefs

    def update_preferences(self, user_id: int, changes: dict) -> NotificationPreferencesModel:
        unknown = set(changes) - set(PREFERENCE_FLAGS)
        if unknown:
            raise ValidationError(f"Unknown preference flags: {', '.join(sorted(unknown))}")

        prefs = self.get_preferences(user_id)

        for flag, value in changes.items():
            if value is None:
                continue
            setattr(prefs, flag, bool(value))

        saved = self.repo.save(prefs)
        logger.info(f"Notification preferences updated for user {user_id}")
        return saved
