"""
SQLAlchemy-backed stores used by the scheduler.

Every database error is turned into StoreUnavailable after rolling the
session back, so callers can skip one item and keep going.
"""

import functools
from datetime import datetime, timezone

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from models.intake import IntakeEvent
from models.medication import Medication
from models.notification import Notification, NotificationChannel
from models.notification_preferences import NotificationPreferences, default_preferences
from models.push_subscription import PushSubscription
from models.treatment import Treatment, TreatmentMedication
from models.user import Profile, User
from services.dose_timeline import as_utc, effective_start
from services.errors import StoreUnavailable
from services.snapshots import (
    Consumer,
    MedicationSnapshot,
    TreatmentMedicationSnapshot,
    TreatmentSnapshot,
)


def _store_call(fn):
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"{type(self).__name__}.{fn.__name__} failed: {exc}") from exc

    return wrapper


class _SessionStore:
    def __init__(self, db: Session):
        self.db = db


class TreatmentStore(_SessionStore):
    @_store_call
    def list_active_treatments_with_medications(self, now: datetime) -> list[TreatmentSnapshot]:
        rows = (
            self.db.query(Treatment)
            .options(
                joinedload(Treatment.user),
                joinedload(Treatment.medications).joinedload(TreatmentMedication.medication),
            )
            .filter(Treatment.is_active == True, Treatment.end_date >= now)  # noqa: E712
            .order_by(Treatment.id.asc())
            .all()
        )
        return [_treatment_snapshot(t) for t in rows]


def _treatment_snapshot(treatment: Treatment) -> TreatmentSnapshot:
    lines = []
    for tm in treatment.medications:
        med = tm.medication
        lines.append(
            TreatmentMedicationSnapshot(
                id=tm.id,
                treatment_id=treatment.id,
                medication_id=tm.medication_id,
                medication_name=med.commercial_name if med else "Medication",
                unit=med.unit if med else "units",
                dosage=tm.dosage,
                frequency_hours=tm.frequency_hours,
                duration_days=tm.duration_days,
                effective_start=effective_start(tm.specific_start_time, tm.created_at or treatment.start_date),
                is_active=bool(tm.is_active),
            )
        )
    patient_type = treatment.patient_type.value if hasattr(treatment.patient_type, "value") else str(treatment.patient_type)
    return TreatmentSnapshot(
        id=treatment.id,
        name=treatment.name,
        user_id=treatment.user_id,
        user_email=treatment.user.email if treatment.user else None,
        patient_name=treatment.patient,
        end_date=as_utc(treatment.end_date),
        patient_id=treatment.patient_id,
        patient_type=patient_type,
        medications=tuple(lines),
    )


class MedicationStore(_SessionStore):
    @_store_call
    def list_alertable(self) -> list[MedicationSnapshot]:
        rows = (
            self.db.query(Medication, User)
            .join(User, User.id == Medication.user_id)
            .filter(Medication.archived == False)  # noqa: E712
            .order_by(Medication.user_id.asc(), Medication.id.asc())
            .all()
        )
        return [
            MedicationSnapshot(
                id=med.id,
                user_id=med.user_id,
                user_email=user.email,
                commercial_name=med.commercial_name,
                unit=med.unit,
                current_quantity=med.current_quantity or 0,
                expiration_date=as_utc(med.expiration_date),
            )
            for med, user in rows
        ]


class IntakeLogStore(_SessionStore):
    @_store_call
    def find_intake_events(
        self,
        medication_id: int,
        consumer: Consumer,
        window_start: datetime,
        window_end: datetime,
    ) -> list[IntakeEvent]:
        who = [IntakeEvent.user_id.in_(sorted(consumer.user_ids))]
        if consumer.profile_id is not None:
            who.append(IntakeEvent.profile_id == consumer.profile_id)
        return (
            self.db.query(IntakeEvent)
            .filter(
                IntakeEvent.medication_id == medication_id,
                or_(*who),
                and_(IntakeEvent.taken_at >= window_start, IntakeEvent.taken_at <= window_end),
            )
            .order_by(IntakeEvent.taken_at.asc())
            .all()
        )

    def __call__(self, medication_id, consumer, window_start, window_end):
        return self.find_intake_events(medication_id, consumer, window_start, window_end)


class NotificationStore(_SessionStore):
    @_store_call
    def get(self, treatment_medication_id: int, dose_index: int, channel: NotificationChannel) -> Notification | None:
        return (
            self.db.query(Notification)
            .filter(
                Notification.treatment_medication_id == treatment_medication_id,
                Notification.dose_index == dose_index,
                Notification.channel == channel,
            )
            .first()
        )

    def exists(self, treatment_medication_id: int, dose_index: int, channel: NotificationChannel) -> bool:
        return self.get(treatment_medication_id, dose_index, channel) is not None

    def claim(self, **fields) -> Notification | None:
        """Insert the reminder row; None when another run already holds the key."""
        row = Notification(sent=False, attempts=0, **fields)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailable(f"NotificationStore.claim failed: {exc}") from exc
        self.db.refresh(row)
        return row

    @_store_call
    def record_attempt(self, row: Notification, sent: bool, now: datetime | None = None) -> Notification:
        row.attempts = (row.attempts or 0) + 1
        row.sent = sent
        if sent:
            row.sent_at = now or datetime.now(timezone.utc)
        self.db.commit()
        return row


class PreferencesStore(_SessionStore):
    @_store_call
    def get_by_user_id(self, user_id: int) -> NotificationPreferences:
        prefs = (
            self.db.query(NotificationPreferences)
            .filter(NotificationPreferences.user_id == user_id)
            .first()
        )
        return prefs or default_preferences(user_id)

    @_store_call
    def save(self, user_id: int, **values) -> NotificationPreferences:
        prefs = (
            self.db.query(NotificationPreferences)
            .filter(NotificationPreferences.user_id == user_id)
            .first()
        )
        if prefs is None:
            prefs = default_preferences(user_id)
            self.db.add(prefs)
        for key, value in values.items():
            setattr(prefs, key, value)
        self.db.commit()
        self.db.refresh(prefs)
        return prefs


class PushSubscriptionStore(_SessionStore):
    @_store_call
    def list_by_user_id(self, user_id: int) -> list[PushSubscription]:
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.id.asc())
            .all()
        )

    @_store_call
    def delete(self, subscription_id: int) -> bool:
        deleted = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.id == subscription_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return bool(deleted)

    @_store_call
    def delete_by_token(self, user_id: int, token: str) -> bool:
        deleted = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id, PushSubscription.token == token)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return bool(deleted)

    @_store_call
    def upsert(self, user_id: int, token: str, platform: str | None = None, user_agent: str | None = None) -> PushSubscription:
        # A token re-registered from another account moves to the new user.
        sub = self.db.query(PushSubscription).filter(PushSubscription.token == token).first()
        if sub is None:
            sub = PushSubscription(token=token)
            self.db.add(sub)
        sub.user_id = user_id
        sub.platform = platform
        sub.user_agent = user_agent
        self.db.commit()
        self.db.refresh(sub)
        return sub


def patient_display_name(db: Session, patient_id: int | None, patient_type: str) -> str:
    if patient_id is None:
        return ""
    if patient_type == "profile":
        profile = db.query(Profile).filter(Profile.id == patient_id).first()
        return profile.name if profile else ""
    user = db.query(User).filter(User.id == patient_id).first()
    return user.name if user and user.name else ""
