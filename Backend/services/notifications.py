"""
Notification dispatch for dose reminders and cabinet alerts.

Dose reminders are de-duplicated per (treatment medication, dose index,
channel): the row is claimed before delivery and marked sent afterwards. A
row left unsent by a transient failure is retried on the next pass while the
dose is still inside the due window.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from config import (
    NOTIFICATION_BADGE,
    NOTIFICATION_ICON,
    PUBLIC_BASE_URL,
    PUSH_MAX_WORKERS,
    PUSH_TIMEOUT_SECONDS,
    TREATMENTS_PATH,
)
from models.notification import NotificationChannel
from models.notification_preferences import NotificationPreferences
from services.due_doses import DueDose
from services.errors import PermanentSubscriptionFailure, StoreUnavailable, TransientDeliveryFailure
from services.push import PushPayload, PushTarget

logger = logging.getLogger("botilyx.notifications")

APP_NAME = "Botilyx"

# Nominal advance warning per channel. Detection still happens in the single
# due window, so these only set Notification.scheduled_for.
CHANNEL_LEAD = {
    NotificationChannel.push: timedelta(minutes=30),
    NotificationChannel.email: timedelta(minutes=60),
    NotificationChannel.browser: timedelta(minutes=15),
    NotificationChannel.sound: timedelta(minutes=5),
}

CHANNEL_TITLES = {
    NotificationChannel.push: f"💊 {APP_NAME}",
    NotificationChannel.email: "Medication reminder - {name}",
    NotificationChannel.browser: "Medication reminder",
    NotificationChannel.sound: "Time for your medication!",
}

_PUSH_EXECUTOR = ThreadPoolExecutor(max_workers=PUSH_MAX_WORKERS, thread_name_prefix="push")


@dataclass
class ChannelOutcome:
    channel: NotificationChannel
    status: str  # "sent" | "skipped" | "failed"
    detail: str = ""


def enabled_channels(preferences: NotificationPreferences) -> list[NotificationChannel]:
    return [channel for channel in NotificationChannel if getattr(preferences, channel.value, False)]


def _format_amount(value: float) -> str:
    return f"{value:g}"


def compose_dose_message(due: DueDose, channel: NotificationChannel) -> PushPayload:
    line = due.medication
    dosage = f"{_format_amount(line.dosage)} {line.unit}"
    patient = due.consumer.name or due.treatment.patient_name
    body = f"Time for {patient} to take {dosage} of {line.medication_name}"
    if not patient:
        body = f"Time to take {dosage} of {line.medication_name}"
    return PushPayload(
        title=CHANNEL_TITLES[channel].format(name=line.medication_name),
        body=body,
        icon=NOTIFICATION_ICON,
        badge=NOTIFICATION_BADGE,
        url=f"{PUBLIC_BASE_URL}{TREATMENTS_PATH}",
        tag=f"medication-{due.treatment.id}",
        data={
            "treatmentId": due.treatment.id,
            "treatmentMedicationId": line.id,
            "doseIndex": due.dose.index,
            "type": channel.value,
        },
    )


def compose_alert_message(title: str, body: str, tag: str) -> PushPayload:
    return PushPayload(
        title=title,
        body=body,
        icon=NOTIFICATION_ICON,
        badge=NOTIFICATION_BADGE,
        url=f"{PUBLIC_BASE_URL}/botiquin",
        tag=tag,
        require_interaction=False,
        data={"type": tag.split("-", 1)[0]},
    )


class NotificationDispatcher:
    def __init__(
        self,
        notification_store,
        subscription_store,
        push_transport,
        mailer=None,
        push_timeout: float = PUSH_TIMEOUT_SECONDS,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.notifications = notification_store
        self.subscriptions = subscription_store
        self.push_transport = push_transport
        self.mailer = mailer
        self.push_timeout = push_timeout
        self.executor = executor or _PUSH_EXECUTOR

    # Dose reminders

    def dispatch_dose(
        self,
        due: DueDose,
        preferences: NotificationPreferences,
        now: datetime | None = None,
    ) -> list[ChannelOutcome]:
        now = now or datetime.now(timezone.utc)
        outcomes = []
        for channel in enabled_channels(preferences):
            if channel == NotificationChannel.email and not self._mail_ready(due.treatment.user_email):
                outcomes.append(ChannelOutcome(channel, "skipped", "email not configured"))
                continue
            try:
                outcomes.append(self._dispatch_channel(due, channel, now))
            except StoreUnavailable as exc:
                logger.warning(
                    "%s reminder for treatment medication %s dose %s not dispatched: %s",
                    channel.value,
                    due.medication.id,
                    due.dose.index,
                    exc,
                )
                outcomes.append(ChannelOutcome(channel, "failed", "store unavailable"))
        return outcomes

    def _dispatch_channel(self, due: DueDose, channel: NotificationChannel, now: datetime) -> ChannelOutcome:
        line = due.medication
        message = compose_dose_message(due, channel)
        row = self.notifications.get(line.id, due.dose.index, channel)
        if row is not None and row.sent:
            return ChannelOutcome(channel, "skipped", "already sent")
        if row is None:
            row = self.notifications.claim(
                user_id=due.treatment.user_id,
                treatment_id=due.treatment.id,
                treatment_medication_id=line.id,
                dose_index=due.dose.index,
                channel=channel,
                dose_time=due.dose.scheduled_at,
                scheduled_for=due.dose.scheduled_at - CHANNEL_LEAD[channel],
                title=message.title,
                body=message.body,
            )
            if row is None:
                return ChannelOutcome(channel, "skipped", "claimed by another run")

        delivered = self._deliver(channel, due.treatment.user_id, due.treatment.user_email, message)
        self.notifications.record_attempt(row, sent=delivered, now=now)
        if not delivered:
            return ChannelOutcome(channel, "failed", "delivery failed; will retry while due")
        return ChannelOutcome(channel, "sent")

    def _deliver(self, channel: NotificationChannel, user_id: int, email: str | None, message: PushPayload) -> bool:
        if channel == NotificationChannel.push:
            return self.push_to_user(user_id, message)
        if channel == NotificationChannel.email:
            return self.email_to_user(email, message)
        # Browser and sound reminders are rendered client-side from the feed.
        return True

    # Cabinet alerts (expiration, low stock)

    def deliver_alert(self, user_id: int, email: str | None, preferences: NotificationPreferences, message: PushPayload) -> bool:
        delivered = False
        if preferences.push:
            delivered = self.push_to_user(user_id, message) or delivered
        if preferences.email and self._mail_ready(email):
            delivered = self.email_to_user(email, message) or delivered
        return delivered

    # Transports

    def _mail_ready(self, email: str | None) -> bool:
        return bool(self.mailer is not None and self.mailer.configured and email)

    def email_to_user(self, email: str | None, message: PushPayload) -> bool:
        text = f"{message.body}\n\nOpen {APP_NAME} to review your treatments: {message.url}"
        try:
            self.mailer.send(email, message.title, text)
            return True
        except TransientDeliveryFailure as exc:
            logger.warning("Email reminder failed: %s", exc)
            return False

    def push_to_user(self, user_id: int, message: PushPayload) -> bool:
        subscriptions = self.subscriptions.list_by_user_id(user_id)
        if not subscriptions:
            logger.info("Push skipped: user %s has no subscriptions", user_id)
            return True

        # Workers only see plain values; ORM rows stay on this thread.
        targets = [PushTarget(sub.id, sub.token) for sub in subscriptions]
        futures = {
            self.executor.submit(self.push_transport.send, target, message): target
            for target in targets
        }
        done, not_done = wait(futures, timeout=self.push_timeout)
        delivered = False
        stale = []
        for future in done:
            target = futures[future]
            try:
                future.result()
                delivered = True
            except PermanentSubscriptionFailure as exc:
                logger.info("Removing stale subscription %s (status %s)", target.id, exc.status_code)
                stale.append(target.id)
            except TransientDeliveryFailure as exc:
                logger.warning("Push to subscription %s failed: %s", target.id, exc)
            except Exception:
                logger.exception("Push to subscription %s raised unexpectedly", target.id)
        for future in not_done:
            future.cancel()
            logger.warning("Push to subscription %s timed out after %ss", futures[future].id, self.push_timeout)

        # Store writes stay on the calling thread; the session is not shared.
        for subscription_id in stale:
            self.subscriptions.delete(subscription_id)
        return delivered
