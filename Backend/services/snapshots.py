"""Read-only views of store rows handed to the scheduling functions."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Consumer:
    """Whoever takes the doses: the treatment owner or the patient it names."""

    user_id: int
    patient_id: int | None = None
    patient_type: str = "user"
    name: str = ""

    @property
    def user_ids(self) -> set[int]:
        ids = {self.user_id}
        if self.patient_type == "user" and self.patient_id is not None:
            ids.add(self.patient_id)
        return ids

    @property
    def profile_id(self) -> int | None:
        return self.patient_id if self.patient_type == "profile" else None


@dataclass(frozen=True)
class TreatmentMedicationSnapshot:
    id: int
    treatment_id: int
    medication_id: int
    medication_name: str
    unit: str
    dosage: float
    frequency_hours: float
    duration_days: float
    effective_start: datetime
    is_active: bool = True


@dataclass(frozen=True)
class TreatmentSnapshot:
    id: int
    name: str
    user_id: int
    user_email: str | None
    patient_name: str
    end_date: datetime
    patient_id: int | None = None
    patient_type: str = "user"
    medications: tuple[TreatmentMedicationSnapshot, ...] = field(default_factory=tuple)

    @property
    def consumer(self) -> Consumer:
        return Consumer(
            user_id=self.user_id,
            patient_id=self.patient_id,
            patient_type=self.patient_type,
            name=self.patient_name,
        )


@dataclass(frozen=True)
class MedicationSnapshot:
    id: int
    user_id: int
    user_email: str | None
    commercial_name: str
    unit: str
    current_quantity: float
    expiration_date: datetime
