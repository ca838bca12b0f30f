from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models.user import User
from schemas.push_subscription import PushSubscribeIn, PushSubscriptionOut, PushUnsubscribeIn
from services.errors import StoreUnavailable
from services.stores import PushSubscriptionStore

router = APIRouter(prefix="/notifications", tags=["Push Subscriptions"])


@router.get("/subscriptions", response_model=list[PushSubscriptionOut])
def list_subscriptions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PushSubscriptionStore(db).list_by_user_id(current_user.id)


@router.post("/subscribe", response_model=PushSubscriptionOut)
def subscribe(
    data: PushSubscribeIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register this device's FCM token for dose reminders."""
    try:
        return PushSubscriptionStore(db).upsert(
            current_user.id,
            data.token,
            platform=data.platform,
            user_agent=data.user_agent,
        )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Could not save subscription") from exc


@router.post("/unsubscribe")
def unsubscribe(
    data: PushUnsubscribeIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    removed = PushSubscriptionStore(db).delete_by_token(current_user.id, data.token)
    if not removed:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return {"message": "Subscription removed"}
