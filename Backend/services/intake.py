from datetime import datetime, timezone

from sqlalchemy.orm import Session

from models.intake import IntakeEvent
from models.medication import Medication
from models.treatment import TreatmentMedication
from models.user import Profile, User


class IntakeRejected(ValueError):
    pass


def register_intake(
    db: Session,
    current_user: User,
    medication_id: int,
    quantity: float | None = None,
    taken_at: datetime | None = None,
    profile_id: int | None = None,
    treatment_medication_id: int | None = None,
) -> IntakeEvent:
    """Log a dose as taken and deduct it from the cabinet stock."""
    med = (
        db.query(Medication)
        .filter(Medication.id == medication_id, Medication.user_id == current_user.id)
        .first()
    )
    if not med:
        raise LookupError("Medication not found")

    if profile_id is not None:
        profile = (
            db.query(Profile)
            .filter(Profile.id == profile_id, Profile.owner_user_id == current_user.id)
            .first()
        )
        if not profile:
            raise LookupError("Profile not found")

    if treatment_medication_id is not None:
        line = db.query(TreatmentMedication).filter(TreatmentMedication.id == treatment_medication_id).first()
        if not line or line.medication_id != medication_id:
            raise IntakeRejected("Treatment medication does not match the medication")
        if quantity is None:
            quantity = line.dosage

    quantity = quantity if quantity is not None else 1
    if quantity <= 0:
        raise IntakeRejected("Quantity must be positive")
    if (med.current_quantity or 0) < quantity:
        raise IntakeRejected("Not enough stock to register this dose")

    event = IntakeEvent(
        medication_id=med.id,
        treatment_medication_id=treatment_medication_id,
        user_id=None if profile_id is not None else current_user.id,
        profile_id=profile_id,
        quantity=quantity,
        taken_at=taken_at or datetime.now(timezone.utc),
    )
    med.current_quantity = (med.current_quantity or 0) - quantity
    db.add(event)
    db.commit()
    db.refresh(event)
    return event
