"""
Scheduler entry point: one stateless pass over every user.

    expiration alerts -> low-stock alerts -> dose reminders

Each medication, treatment and dose is processed in its own try block so one
bad record never blocks reminders for other patients. Only a failure to load
the treatments at all makes the pass report ok=False; an unreadable cabinet
skips the alert passes and the dose reminders still run.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from models.notification_preferences import NotificationPreferences
from services.dose_timeline import as_utc
from services.due_doses import due_doses_for_treatment
from services.errors import StoreUnavailable
from services.mailer import SmtpMailer
from services.medication_alerts import (
    expiration_message,
    expiration_status,
    is_low_stock,
    low_stock_message,
)
from services.notifications import NotificationDispatcher
from services.push import FirebasePushTransport
from services.stores import (
    IntakeLogStore,
    MedicationStore,
    NotificationStore,
    PreferencesStore,
    PushSubscriptionStore,
    TreatmentStore,
)

logger = logging.getLogger("botilyx.scheduler")


@dataclass
class SchedulerStores:
    treatments: TreatmentStore
    medications: MedicationStore
    intake: IntakeLogStore
    notifications: NotificationStore
    preferences: PreferencesStore
    subscriptions: PushSubscriptionStore

    @classmethod
    def for_session(cls, db: Session) -> "SchedulerStores":
        return cls(
            treatments=TreatmentStore(db),
            medications=MedicationStore(db),
            intake=IntakeLogStore(db),
            notifications=NotificationStore(db),
            preferences=PreferencesStore(db),
            subscriptions=PushSubscriptionStore(db),
        )


class _PreferenceCache:
    def __init__(self, store: PreferencesStore):
        self.store = store
        self._cache: dict[int, NotificationPreferences] = {}

    def get(self, user_id: int) -> NotificationPreferences:
        if user_id not in self._cache:
            self._cache[user_id] = self.store.get_by_user_id(user_id)
        return self._cache[user_id]


def _empty_summary(now: datetime) -> dict:
    return {
        "ok": True,
        "timestamp": now.isoformat(),
        "expiration_alerts": 0,
        "low_stock_alerts": 0,
        "dose_reminders": {"due": 0, "sent": 0, "skipped": 0, "failed": 0},
        "errors": 0,
    }


def run_pass(stores: SchedulerStores, dispatcher: NotificationDispatcher, now: datetime | None = None) -> dict:
    now = as_utc(now or datetime.now(timezone.utc))
    summary = _empty_summary(now)
    try:
        treatments = stores.treatments.list_active_treatments_with_medications(now)
    except StoreUnavailable as exc:
        logger.exception("Notification pass aborted, treatments unavailable")
        summary["ok"] = False
        summary["error"] = str(exc)
        return summary

    preferences = _PreferenceCache(stores.preferences)
    try:
        medications = stores.medications.list_alertable()
    except StoreUnavailable:
        # Cabinet alerts are skipped this pass; dose reminders still go out.
        summary["errors"] += 1
        logger.exception("Cabinet alerts skipped, medications unavailable")
    else:
        _expiration_pass(medications, now, preferences, dispatcher, summary)
        _low_stock_pass(medications, preferences, dispatcher, summary)
    _dose_reminder_pass(treatments, now, stores, preferences, dispatcher, summary)
    logger.info("Notification pass finished: %s", summary)
    return summary


def _expiration_pass(medications, now, preferences, dispatcher, summary) -> None:
    for med in medications:
        try:
            prefs = preferences.get(med.user_id)
            status = expiration_status(med, now, prefs.days_before_expiration)
            if status is None:
                continue
            if dispatcher.deliver_alert(med.user_id, med.user_email, prefs, expiration_message(med, status)):
                summary["expiration_alerts"] += 1
        except Exception:
            summary["errors"] += 1
            logger.exception("Expiration alert failed for medication %s", med.id)


def _low_stock_pass(medications, preferences, dispatcher, summary) -> None:
    for med in medications:
        try:
            prefs = preferences.get(med.user_id)
            if not is_low_stock(med, prefs.low_stock_threshold):
                continue
            if dispatcher.deliver_alert(med.user_id, med.user_email, prefs, low_stock_message(med)):
                summary["low_stock_alerts"] += 1
        except Exception:
            summary["errors"] += 1
            logger.exception("Low-stock alert failed for medication %s", med.id)


def _dose_reminder_pass(treatments, now, stores, preferences, dispatcher, summary) -> None:
    counts = summary["dose_reminders"]
    for treatment in treatments:
        try:
            due_doses = due_doses_for_treatment(treatment, now, stores.intake)
        except Exception:
            summary["errors"] += 1
            logger.exception("Due-dose detection failed for treatment %s", treatment.id)
            continue
        for due in due_doses:
            counts["due"] += 1
            try:
                outcomes = dispatcher.dispatch_dose(due, preferences.get(treatment.user_id), now)
            except Exception:
                counts["failed"] += 1
                summary["errors"] += 1
                logger.exception(
                    "Dose reminder failed for treatment %s, medication line %s, dose %s",
                    treatment.id,
                    due.medication.id,
                    due.dose.index,
                )
                continue
            for outcome in outcomes:
                counts[outcome.status] += 1


def run_notification_pass(
    db: Session,
    now: datetime | None = None,
    push_transport=None,
    mailer=None,
) -> dict:
    stores = SchedulerStores.for_session(db)
    dispatcher = NotificationDispatcher(
        stores.notifications,
        stores.subscriptions,
        push_transport or FirebasePushTransport(),
        mailer if mailer is not None else SmtpMailer(),
    )
    return run_pass(stores, dispatcher, now)
