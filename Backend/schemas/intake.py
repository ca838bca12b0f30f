from datetime import datetime

from pydantic import BaseModel, Field


class IntakeEventCreate(BaseModel):
    medication_id: int
    treatment_medication_id: int | None = None
    profile_id: int | None = None
    quantity: float | None = Field(default=None, gt=0)
    taken_at: datetime | None = None


class IntakeEventOut(BaseModel):
    id: int
    medication_id: int
    treatment_medication_id: int | None
    user_id: int | None
    profile_id: int | None
    quantity: float
    taken_at: datetime

    class Config:
        from_attributes = True
