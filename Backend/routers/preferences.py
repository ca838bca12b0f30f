from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models.user import User
from schemas.preferences import NotificationPreferencesOut, NotificationPreferencesUpdate
from services.stores import PreferencesStore

router = APIRouter(prefix="/notification-preferences", tags=["Notification Preferences"])


@router.get("/", response_model=NotificationPreferencesOut)
def get_preferences(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PreferencesStore(db).get_by_user_id(current_user.id)


@router.put("/", response_model=NotificationPreferencesOut)
def update_preferences(
    data: NotificationPreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PreferencesStore(db).save(current_user.id, **data.model_dump(exclude_unset=True))
