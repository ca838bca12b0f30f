"""
Dose timeline: expected dose timestamps for one treatment medication.

The treatment window is half-open, ``[start, start + duration_days)``, so a
line always yields ``ceil(duration_days * 24 / frequency_hours)`` doses and a
dose landing exactly on the end instant is not part of the course.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterator, NamedTuple

from services.errors import InvalidScheduleParameters


class ExpectedDose(NamedTuple):
    index: int
    scheduled_at: datetime
    treatment_medication_id: int | None = None


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate(frequency_hours: float, duration_days: float) -> None:
    if frequency_hours is None or frequency_hours <= 0:
        raise InvalidScheduleParameters(f"frequency_hours must be positive, got {frequency_hours!r}")
    if duration_days is None or duration_days <= 0:
        raise InvalidScheduleParameters(f"duration_days must be positive, got {duration_days!r}")


def _ceil_div(a: timedelta, b: timedelta) -> int:
    return -((-a) // b)


def total_dose_count(frequency_hours: float, duration_days: float) -> int:
    _validate(frequency_hours, duration_days)
    return _ceil_div(timedelta(days=duration_days), timedelta(hours=frequency_hours))


def required_units(dosage: float, frequency_hours: float, duration_days: float) -> float:
    return total_dose_count(frequency_hours, duration_days) * dosage


def has_sufficient_stock(current_quantity: float, dosage: float, frequency_hours: float, duration_days: float) -> bool:
    return (current_quantity or 0) >= required_units(dosage, frequency_hours, duration_days)


def effective_start(specific_start_time: datetime | None, created_at: datetime) -> datetime:
    return as_utc(specific_start_time if specific_start_time is not None else created_at)


class DoseTimeline:
    """Lazy, restartable sequence of ExpectedDose values."""

    def __init__(
        self,
        start: datetime,
        frequency_hours: float,
        duration_days: float,
        treatment_medication_id: int | None = None,
    ):
        _validate(frequency_hours, duration_days)
        self.start = as_utc(start)
        self.step = timedelta(hours=frequency_hours)
        self.span = timedelta(days=duration_days)
        self.treatment_medication_id = treatment_medication_id

    @property
    def end(self) -> datetime:
        return self.start + self.span

    def __len__(self) -> int:
        return _ceil_div(self.span, self.step)

    def __iter__(self) -> Iterator[ExpectedDose]:
        for index in range(len(self)):
            yield self.at(index)

    def at(self, index: int) -> ExpectedDose:
        if index < 0 or index >= len(self):
            raise IndexError(f"dose index {index} outside timeline of {len(self)} doses")
        return ExpectedDose(index, self.start + index * self.step, self.treatment_medication_id)

    def first_at_or_after(self, moment: datetime) -> ExpectedDose | None:
        """First dose scheduled at or after ``moment``, or None once the course is over."""
        elapsed = as_utc(moment) - self.start
        index = 0 if elapsed <= timedelta(0) else _ceil_div(elapsed, self.step)
        if index >= len(self):
            return None
        return self.at(index)
