import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import NamedTuple

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from config import FIREBASE_PROJECT_ID, PUSH_TIMEOUT_SECONDS
from services.errors import PermanentSubscriptionFailure, TransientDeliveryFailure

logger = logging.getLogger("botilyx.push")

DEFAULT_VIBRATION = (200, 100, 200)


class PushTarget(NamedTuple):
    """Plain copy of a subscription, safe to hand to a worker thread."""

    id: int
    token: str


@dataclass
class PushPayload:
    title: str
    body: str
    icon: str
    badge: str
    url: str
    tag: str = ""
    vibrate: tuple[int, ...] = DEFAULT_VIBRATION
    require_interaction: bool = True
    data: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "tag": self.tag,
            "vibrate": list(self.vibrate),
            "requireInteraction": self.require_interaction,
            "data": {**self.data, "url": self.url},
        }


def init_firebase() -> None:
    if firebase_admin._apps:
        return
    options = {"httpTimeout": PUSH_TIMEOUT_SECONDS}
    if FIREBASE_PROJECT_ID:
        options["projectId"] = FIREBASE_PROJECT_ID
    firebase_sa = os.getenv("FIREBASE_SERVICE_ACCOUNT")
    if not firebase_sa:
        logger.warning("FIREBASE_SERVICE_ACCOUNT not set; push reminders will not be delivered")
        return
    try:
        sa_dict = json.loads(firebase_sa)
    except json.JSONDecodeError:
        # Render sometimes adds extra quotes; strip them
        cleaned = firebase_sa.strip().strip("'").strip('"')
        try:
            sa_dict = json.loads(cleaned)
        except json.JSONDecodeError:
            tmp = tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False)
            tmp.write(firebase_sa)
            tmp.close()
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = tmp.name
            firebase_admin.initialize_app(options=options)
            return

    # Fix escaped newlines in private_key (common Render issue)
    if "private_key" in sa_dict and "\\n" in sa_dict["private_key"]:
        sa_dict["private_key"] = sa_dict["private_key"].replace("\\n", "\n")
    firebase_admin.initialize_app(credentials.Certificate(sa_dict), options=options)
    logger.info("Firebase Admin SDK initialized")


def build_message(token: str, payload: PushPayload) -> messaging.Message:
    data = {k: str(v) for k, v in payload.as_dict()["data"].items()}
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data=data,
        android=messaging.AndroidConfig(
            notification=messaging.AndroidNotification(
                icon=payload.icon,
                tag=payload.tag or None,
                sound="default",
                channel_id="botilyx_reminders",
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default")),
        ),
        webpush=messaging.WebpushConfig(
            notification=messaging.WebpushNotification(
                title=payload.title,
                body=payload.body,
                icon=payload.icon,
                badge=payload.badge,
                tag=payload.tag or None,
                vibrate=list(payload.vibrate),
                require_interaction=payload.require_interaction,
            ),
            fcm_options=messaging.WebpushFCMOptions(link=payload.url),
        ),
    )


def _status_code(exc: firebase_exceptions.FirebaseError, default: int) -> int:
    response = getattr(exc, "http_response", None)
    return getattr(response, "status_code", None) or default


class FirebasePushTransport:
    """Delivers a payload to one FCM registration token."""

    def send(self, subscription: PushTarget, payload: PushPayload) -> str:
        if not firebase_admin._apps:
            raise TransientDeliveryFailure("Firebase Admin is not initialized")
        try:
            return messaging.send(build_message(subscription.token, payload))
        except (messaging.UnregisteredError, messaging.SenderIdMismatchError) as exc:
            raise PermanentSubscriptionFailure(
                f"subscription {subscription.id} is no longer valid: {exc}",
                status_code=_status_code(exc, 410),
            ) from exc
        except firebase_exceptions.FirebaseError as exc:
            raise TransientDeliveryFailure(f"push to subscription {subscription.id} failed: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise TransientDeliveryFailure(f"push to subscription {subscription.id} failed: {exc}") from exc
