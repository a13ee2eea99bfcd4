# app/repos/preferences_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.data.models.notification_preferences import NotificationPreferencesModel


class PreferencesRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: int) -> NotificationPreferencesModel | None:
        return self.db.execute(
            select(NotificationPreferencesModel).where(NotificationPreferencesModel.user_id == user_id)
        ).scalar_one_or_none()

    def create(self, prefs: NotificationPreferencesModel) -> NotificationPreferencesModel:
        self.db.add(prefs)
        self.db.commit()
        self.db.refresh(prefs)
        return prefs

    def save(self, prefs: NotificationPreferencesModel) -> NotificationPreferencesModel:
        self.db.add(prefs)
        self.db.commit()
        self.db.refresh(prefs)
        return prefs

    def rollback(self):
        self.db.rollback()
