import os

os.environ["DATABASE_URL"] = "sqlite://"

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
import models  # noqa: F401
from models.intake import IntakeEvent
from models.medication import Medication
from models.notification_preferences import NotificationPreferences
from models.push_subscription import PushSubscription
from models.treatment import PatientType, StartMode, Treatment, TreatmentMedication
from models.user import Profile, User
from services.dose_timeline import ExpectedDose
from services.due_doses import DueDose
from services.errors import PermanentSubscriptionFailure, TransientDeliveryFailure
from services.snapshots import TreatmentMedicationSnapshot, TreatmentSnapshot

T0 = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)


def make_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)()


def add_user(db, name="Ana", email="ana@example.com"):
    user = User(name=name, email=email)
    db.add(user)
    db.commit()
    return user


def add_profile(db, owner, name="Leo"):
    profile = Profile(owner_user_id=owner.id, name=name)
    db.add(profile)
    db.commit()
    return profile


def add_medication(db, user, name="Ibuprofen", quantity=40, unit="tablets", expires=None, archived=False):
    med = Medication(
        user_id=user.id,
        commercial_name=name,
        unit=unit,
        initial_quantity=quantity,
        current_quantity=quantity,
        expiration_date=expires or T0 + timedelta(days=365),
        archived=archived,
    )
    db.add(med)
    db.commit()
    return med


def add_treatment(db, user, med, start=T0, frequency_hours=8, duration_days=2, dosage=1,
                  patient="Ana", patient_id=None, patient_type=PatientType.user):
    line = TreatmentMedication(
        medication_id=med.id,
        dosage=dosage,
        frequency_hours=frequency_hours,
        duration_days=duration_days,
        start_mode=StartMode.specific_time,
        specific_start_time=start,
        is_active=True,
        created_at=start,
    )
    treatment = Treatment(
        user_id=user.id,
        name="Flu",
        patient=patient,
        patient_id=patient_id,
        patient_type=patient_type,
        start_date=start,
        end_date=start + timedelta(days=duration_days),
        is_active=True,
        medications=[line],
    )
    db.add(treatment)
    db.commit()
    return treatment


def add_subscription(db, user, token):
    sub = PushSubscription(user_id=user.id, token=token, platform="web")
    db.add(sub)
    db.commit()
    return sub


def add_preferences(db, user, **values):
    prefs = NotificationPreferences(
        user_id=user.id,
        push=values.get("push", True),
        email=values.get("email", False),
        browser=values.get("browser", False),
        sound=values.get("sound", False),
        days_before_expiration=values.get("days_before_expiration", 30),
        low_stock_threshold=values.get("low_stock_threshold", 10),
    )
    db.add(prefs)
    db.commit()
    return prefs


def add_intake(db, med, taken_at, user=None, profile=None):
    ev = IntakeEvent(
        medication_id=med.id,
        user_id=user.id if user else None,
        profile_id=profile.id if profile else None,
        quantity=1,
        taken_at=taken_at,
    )
    db.add(ev)
    db.commit()
    return ev


def line_snapshot(id=1, start=T0, frequency_hours=8, duration_days=2, medication_id=10,
                  is_active=True, dosage=1):
    return TreatmentMedicationSnapshot(
        id=id,
        treatment_id=100,
        medication_id=medication_id,
        medication_name="Ibuprofen",
        unit="tablets",
        dosage=dosage,
        frequency_hours=frequency_hours,
        duration_days=duration_days,
        effective_start=start,
        is_active=is_active,
    )


def treatment_snapshot(*lines, id=100, user_id=1, end_date=None, patient_id=None, patient_type="user"):
    lines = lines or (line_snapshot(),)
    return TreatmentSnapshot(
        id=id,
        name="Flu",
        user_id=user_id,
        user_email="ana@example.com",
        patient_name="Ana",
        end_date=end_date or T0 + timedelta(days=30),
        patient_id=patient_id,
        patient_type=patient_type,
        medications=tuple(lines),
    )


def due_dose(index=1, at=None, line=None, treatment=None):
    line = line or line_snapshot()
    treatment = treatment or treatment_snapshot(line)
    at = at or line.effective_start + timedelta(hours=line.frequency_hours * index)
    return DueDose(
        treatment=treatment,
        medication=line,
        dose=ExpectedDose(index, at, line.id),
        consumer=treatment.consumer,
    )


def no_intake(*_args):
    return []


class FakePushTransport:
    """Records sends; per-token behaviour: 'ok', 'gone', 'flaky', 'boom', 'hang'."""

    def __init__(self, behaviour=None):
        self.behaviour = behaviour or {}
        self.sent = []
        self.received = []
        self.release = threading.Event()
        self._lock = threading.Lock()

    def send(self, subscription, payload):
        with self._lock:
            self.sent.append((subscription.token, payload))
            self.received.append(subscription)
        mode = self.behaviour.get(subscription.token, "ok")
        if mode == "gone":
            raise PermanentSubscriptionFailure("gone", status_code=410)
        if mode == "flaky":
            raise TransientDeliveryFailure("503 from FCM")
        if mode == "boom":
            raise RuntimeError("unexpected transport bug")
        if mode == "hang":
            self.release.wait(5)
        return f"msg-{subscription.token}"

    def tokens(self):
        return [token for token, _ in self.sent]


class FakeMailer:
    def __init__(self, configured=True, fail=False):
        self.configured = configured
        self.fail = fail
        self.sent = []

    def send(self, recipient_email, subject, body):
        self.sent.append((recipient_email, subject, body))
        if self.fail:
            raise TransientDeliveryFailure("smtp down")


def make_executor():
    return ThreadPoolExecutor(max_workers=4)
