from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user
from models.medication import Medication
from models.treatment import PatientType, StartMode, Treatment, TreatmentMedication
from models.user import User
from schemas.treatment import (
    DoseOut,
    MedicationScheduleOut,
    TreatmentCreate,
    TreatmentMedicationOut,
    TreatmentOut,
)
from services.dose_timeline import DoseTimeline, as_utc, effective_start, has_sufficient_stock, required_units
from services.stores import patient_display_name

router = APIRouter(prefix="/treatments", tags=["Treatments"])


def _to_out(treatment: Treatment) -> TreatmentOut:
    return TreatmentOut(
        id=treatment.id,
        name=treatment.name,
        patient=treatment.patient,
        patient_id=treatment.patient_id,
        patient_type=treatment.patient_type.value,
        start_date=as_utc(treatment.start_date),
        end_date=as_utc(treatment.end_date),
        is_active=bool(treatment.is_active),
        medications=[
            TreatmentMedicationOut(
                id=tm.id,
                medication_id=tm.medication_id,
                dosage=tm.dosage,
                frequency_hours=tm.frequency_hours,
                duration_days=tm.duration_days,
                start_mode=tm.start_mode.value,
                specific_start_time=as_utc(tm.specific_start_time) if tm.specific_start_time else None,
                is_active=bool(tm.is_active),
            )
            for tm in treatment.medications
        ],
    )


def _get_owned_treatment(db: Session, treatment_id: int, user: User) -> Treatment:
    treatment = (
        db.query(Treatment)
        .filter(Treatment.id == treatment_id, Treatment.user_id == user.id)
        .first()
    )
    if not treatment:
        raise HTTPException(status_code=404, detail="Treatment not found")
    return treatment


@router.post("/", response_model=TreatmentOut)
def create_treatment(
    data: TreatmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    now = datetime.now(timezone.utc)
    lines = []
    for item in data.medications:
        med = (
            db.query(Medication)
            .filter(Medication.id == item.medication_id, Medication.user_id == current_user.id)
            .first()
        )
        if not med or med.archived:
            raise HTTPException(status_code=404, detail=f"Medication {item.medication_id} not found")
        if not has_sufficient_stock(med.current_quantity, item.dosage, item.frequency_hours, item.duration_days):
            needed = required_units(item.dosage, item.frequency_hours, item.duration_days)
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Not enough stock of {med.commercial_name}: "
                    f"{needed:g} {med.unit} needed, {med.current_quantity:g} available"
                ),
            )
        start = effective_start(item.specific_start_time, now)
        lines.append(
            (
                TreatmentMedication(
                    medication_id=med.id,
                    dosage=item.dosage,
                    frequency_hours=item.frequency_hours,
                    duration_days=item.duration_days,
                    start_mode=StartMode(item.start_mode),
                    specific_start_time=start if item.start_mode == StartMode.specific_time.value else None,
                    is_active=True,
                    created_at=now,
                ),
                DoseTimeline(start, item.frequency_hours, item.duration_days),
            )
        )

    patient = data.patient or patient_display_name(db, data.patient_id, data.patient_type) or current_user.name or ""
    treatment = Treatment(
        user_id=current_user.id,
        name=data.name,
        patient=patient,
        patient_id=data.patient_id,
        patient_type=PatientType(data.patient_type),
        symptoms=data.symptoms,
        start_date=min(timeline.start for _, timeline in lines),
        end_date=max(timeline.end for _, timeline in lines),
        is_active=True,
        medications=[line for line, _ in lines],
    )
    db.add(treatment)
    db.commit()
    db.refresh(treatment)
    return _to_out(treatment)


@router.get("/{treatment_id}", response_model=TreatmentOut)
def get_treatment(
    treatment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _to_out(_get_owned_treatment(db, treatment_id, current_user))


@router.get("/{treatment_id}/schedule", response_model=list[MedicationScheduleOut])
def get_treatment_schedule(
    treatment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Expected dose times of every medication line in the treatment."""
    treatment = _get_owned_treatment(db, treatment_id, current_user)
    result = []
    for tm in treatment.medications:
        timeline = DoseTimeline(
            effective_start(tm.specific_start_time, tm.created_at or treatment.start_date),
            tm.frequency_hours,
            tm.duration_days,
            tm.id,
        )
        result.append(
            MedicationScheduleOut(
                treatment_medication_id=tm.id,
                medication_id=tm.medication_id,
                total_doses=len(timeline),
                doses=[DoseOut(index=d.index, scheduled_at=d.scheduled_at) for d in timeline],
            )
        )
    return result


@router.delete("/{treatment_id}")
def delete_treatment(
    treatment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    treatment = _get_owned_treatment(db, treatment_id, current_user)
    db.delete(treatment)
    db.commit()
    return {"message": "Treatment removed"}
