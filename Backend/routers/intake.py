from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models.intake import IntakeEvent
from models.user import Profile, User
from schemas.intake import IntakeEventCreate, IntakeEventOut
from services.intake import IntakeRejected, register_intake

router = APIRouter(prefix="/intake-events", tags=["Intake"])


@router.post("/", response_model=IntakeEventOut)
def register_dose_taken(
    data: IntakeEventCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register a dose as taken; suppresses the reminder for that dose."""
    try:
        return register_intake(
            db,
            current_user,
            medication_id=data.medication_id,
            quantity=data.quantity,
            taken_at=data.taken_at,
            profile_id=data.profile_id,
            treatment_medication_id=data.treatment_medication_id,
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except IntakeRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/", response_model=list[IntakeEventOut])
def list_intake_events(
    limit: int = Query(default=100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile_ids = [
        pid for (pid,) in db.query(Profile.id).filter(Profile.owner_user_id == current_user.id).all()
    ]
    return (
        db.query(IntakeEvent)
        .filter(or_(IntakeEvent.user_id == current_user.id, IntakeEvent.profile_id.in_(profile_ids)))
        .order_by(IntakeEvent.taken_at.desc())
        .limit(limit)
        .all()
    )
