from datetime import datetime, timedelta

from services.dose_timeline import as_utc
from services.notifications import compose_alert_message
from services.push import PushPayload
from services.snapshots import MedicationSnapshot


def expiration_status(med: MedicationSnapshot, now: datetime, days_before_expiration: int) -> str | None:
    """'expired', 'expiring' or None when the medication is fine."""
    expires = as_utc(med.expiration_date)
    now = as_utc(now)
    if expires <= now:
        return "expired"
    if expires <= now + timedelta(days=days_before_expiration):
        return "expiring"
    return None


def is_low_stock(med: MedicationSnapshot, low_stock_threshold: float) -> bool:
    quantity = med.current_quantity or 0
    return 0 < quantity <= low_stock_threshold


def expiration_message(med: MedicationSnapshot, status: str) -> PushPayload:
    if status == "expired":
        body = f"'{med.commercial_name}' has expired."
    else:
        body = f"'{med.commercial_name}' is about to expire ({as_utc(med.expiration_date):%Y-%m-%d})."
    return compose_alert_message("Medication expiration", body, tag=f"expiry-{med.id}")


def low_stock_message(med: MedicationSnapshot) -> PushPayload:
    body = f"Running low on '{med.commercial_name}' ({med.current_quantity:g} {med.unit} left)."
    return compose_alert_message("Low stock", body, tag=f"stock-{med.id}")
