from models.user import User, Profile
from models.medication import Medication
from models.treatment import Treatment, TreatmentMedication, StartMode, PatientType
from models.intake import IntakeEvent
from models.notification import Notification, NotificationChannel
from models.notification_preferences import NotificationPreferences
from models.push_subscription import PushSubscription

__all__ = [
    "User",
    "Profile",
    "Medication",
    "Treatment",
    "TreatmentMedication",
    "StartMode",
    "PatientType",
    "IntakeEvent",
    "Notification",
    "NotificationChannel",
    "NotificationPreferences",
    "PushSubscription",
]
