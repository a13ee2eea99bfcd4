# app/api/routers/notifications.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import ShopError
from app.domain.schemas import NotificationPreferencesOut, NotificationPreferencesUpdate
from app.services.preferences_service import PreferencesService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/preferences/{user_id}", response_model=NotificationPreferencesOut)
def get_preferences(user_id: int, db: Session = Depends(get_db)):
    return PreferencesService(db).get_preferences(user_id)


@router.patch("/preferences/{user_id}", response_model=NotificationPreferencesOut)
def update_preferences(
    user_id: int,
    payload: NotificationPreferencesUpdate,
    db: Session = Depends(get_db),
):
    try:
        return PreferencesService(db).update_preferences(user_id, payload.model_dump(exclude_none=True))
    except ShopError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
