"""
Due-dose detection.

Each active line contributes at most one candidate: the first dose not older
than the due window. Missed doses further back are never reported, so a
scheduler outage does not produce a burst of stale reminders.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Sequence

from config import DUE_WINDOW_MINUTES, INTAKE_TOLERANCE_MINUTES
from services.dose_timeline import DoseTimeline, ExpectedDose, as_utc
from services.errors import InvalidScheduleParameters
from services.snapshots import Consumer, TreatmentMedicationSnapshot, TreatmentSnapshot

logger = logging.getLogger("botilyx.due_doses")

DUE_WINDOW = timedelta(minutes=DUE_WINDOW_MINUTES)
INTAKE_TOLERANCE = timedelta(minutes=INTAKE_TOLERANCE_MINUTES)

# (medication_id, consumer, window_start, window_end) -> intake events
IntakeLookup = Callable[[int, Consumer, datetime, datetime], Sequence]


@dataclass(frozen=True)
class DueDose:
    treatment: TreatmentSnapshot
    medication: TreatmentMedicationSnapshot
    dose: ExpectedDose
    consumer: Consumer


def is_due(dose_time: datetime, now: datetime, window: timedelta = DUE_WINDOW) -> bool:
    delta = as_utc(dose_time) - as_utc(now)
    return -window <= delta <= window


def next_candidate_dose(
    line: TreatmentMedicationSnapshot,
    now: datetime,
    window: timedelta = DUE_WINDOW,
) -> ExpectedDose | None:
    timeline = DoseTimeline(line.effective_start, line.frequency_hours, line.duration_days, line.id)
    return timeline.first_at_or_after(as_utc(now) - window)


def was_taken(
    lookup: IntakeLookup,
    medication_id: int,
    consumer: Consumer,
    dose_time: datetime,
    tolerance: timedelta = INTAKE_TOLERANCE,
) -> bool:
    return bool(lookup(medication_id, consumer, dose_time - tolerance, dose_time + tolerance))


def due_doses_for_treatment(
    treatment: TreatmentSnapshot,
    now: datetime,
    intake_lookup: IntakeLookup,
    window: timedelta = DUE_WINDOW,
    tolerance: timedelta = INTAKE_TOLERANCE,
) -> list[DueDose]:
    now = as_utc(now)
    if as_utc(treatment.end_date) < now:
        return []
    consumer = treatment.consumer
    due: list[DueDose] = []
    for line in treatment.medications:
        if not line.is_active:
            continue
        try:
            dose = next_candidate_dose(line, now, window)
        except InvalidScheduleParameters as exc:
            logger.error("Skipping treatment medication %s: %s", line.id, exc)
            continue
        if dose is None or not is_due(dose.scheduled_at, now, window):
            continue
        if was_taken(intake_lookup, line.medication_id, consumer, dose.scheduled_at, tolerance):
            logger.info(
                "Dose %s of treatment medication %s already taken; no reminder",
                dose.index,
                line.id,
            )
            continue
        due.append(DueDose(treatment=treatment, medication=line, dose=dose, consumer=consumer))
    return due


def find_due_doses(
    treatments: Iterable[TreatmentSnapshot],
    now: datetime,
    intake_lookup: IntakeLookup,
    window: timedelta = DUE_WINDOW,
    tolerance: timedelta = INTAKE_TOLERANCE,
) -> list[DueDose]:
    result: list[DueDose] = []
    for treatment in treatments:
        result.extend(due_doses_for_treatment(treatment, now, intake_lookup, window, tolerance))
    return result
