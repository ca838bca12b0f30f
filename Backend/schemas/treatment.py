from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator


class TreatmentMedicationCreate(BaseModel):
    medication_id: int
    dosage: float = Field(default=1, gt=0)
    frequency_hours: int = Field(gt=0, le=24 * 7)
    duration_days: int = Field(gt=0, le=365)
    start_mode: str = Field(default="immediate", pattern="^(immediate|specific_time)$")
    specific_start_time: datetime | None = None

    @model_validator(mode="after")
    def validate_start(self):
        if self.start_mode == "specific_time":
            if self.specific_start_time is None:
                raise ValueError("specific_start_time is required when start_mode is specific_time")
            start = self.specific_start_time
            if start.tzinfo is None:
                start = start.replace(tzinfo=timezone.utc)
            if start <= datetime.now(timezone.utc):
                raise ValueError("specific_start_time must be in the future")
        elif self.specific_start_time is not None:
            raise ValueError("specific_start_time is only allowed with start_mode specific_time")
        return self


class TreatmentCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    patient: str | None = Field(default=None, max_length=120)
    patient_id: int | None = None
    patient_type: str = Field(default="user", pattern="^(user|profile)$")
    symptoms: str | None = Field(default=None, max_length=500)
    medications: list[TreatmentMedicationCreate] = Field(min_length=1)


class TreatmentMedicationOut(BaseModel):
    id: int
    medication_id: int
    dosage: float
    frequency_hours: int
    duration_days: int
    start_mode: str
    specific_start_time: datetime | None
    is_active: bool


class TreatmentOut(BaseModel):
    id: int
    name: str
    patient: str
    patient_id: int | None
    patient_type: str
    start_date: datetime
    end_date: datetime
    is_active: bool
    medications: list[TreatmentMedicationOut]


class DoseOut(BaseModel):
    index: int
    scheduled_at: datetime


class MedicationScheduleOut(BaseModel):
    treatment_medication_id: int
    medication_id: int
    total_doses: int
    doses: list[DoseOut]
