import json
import os
import unittest
from unittest import mock

from firebase_admin import exceptions as firebase_exceptions, messaging

from services import push
from services.errors import PermanentSubscriptionFailure, TransientDeliveryFailure
from services.push import FirebasePushTransport, PushPayload, PushTarget, build_message


def payload():
    return PushPayload(
        title="💊 Botilyx",
        body="Time for Ana to take 1 tablets of Ibuprofen",
        icon="/icon.png",
        badge="/badge.png",
        url="https://botilyx.example/tratamientos",
        tag="medication-100",
        data={"treatmentId": 100, "doseIndex": 2},
    )


SUBSCRIPTION = PushTarget(id=5, token="fcm-token-123")


class TestBuildMessage(unittest.TestCase):
    def test_message_targets_token_and_links_to_treatments(self):
        message = build_message("fcm-token-123", payload())
        self.assertEqual(message.token, "fcm-token-123")
        self.assertEqual(message.notification.title, "💊 Botilyx")
        self.assertEqual(message.webpush.fcm_options.link, "https://botilyx.example/tratamientos")
        self.assertEqual(message.webpush.notification.tag, "medication-100")
        self.assertEqual(message.webpush.notification.vibrate, [200, 100, 200])
        self.assertTrue(message.webpush.notification.require_interaction)

    def test_data_values_are_strings(self):
        message = build_message("t", payload())
        self.assertEqual(
            message.data,
            {"treatmentId": "100", "doseIndex": "2", "url": "https://botilyx.example/tratamientos"},
        )


class TestFirebasePushTransport(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch.object(push.firebase_admin, "_apps", {"[DEFAULT]": object()})
        patcher.start()
        self.addCleanup(patcher.stop)
        self.transport = FirebasePushTransport()

    def test_send_returns_message_id(self):
        with mock.patch.object(push.messaging, "send", return_value="projects/x/messages/1") as send:
            self.assertEqual(self.transport.send(SUBSCRIPTION, payload()), "projects/x/messages/1")
        self.assertEqual(send.call_args.args[0].token, "fcm-token-123")

    def test_unregistered_token_is_permanent(self):
        error = messaging.UnregisteredError("Requested entity was not found.")
        with mock.patch.object(push.messaging, "send", side_effect=error):
            with self.assertRaises(PermanentSubscriptionFailure) as ctx:
                self.transport.send(SUBSCRIPTION, payload())
        self.assertEqual(ctx.exception.status_code, 410)

    def test_service_outage_is_transient(self):
        error = firebase_exceptions.UnavailableError("FCM unavailable")
        with mock.patch.object(push.messaging, "send", side_effect=error):
            with self.assertRaises(TransientDeliveryFailure):
                self.transport.send(SUBSCRIPTION, payload())

    def test_network_error_is_transient(self):
        with mock.patch.object(push.messaging, "send", side_effect=ConnectionResetError("reset")):
            with self.assertRaises(TransientDeliveryFailure):
                self.transport.send(SUBSCRIPTION, payload())

    def test_uninitialized_firebase_is_transient(self):
        with mock.patch.object(push.firebase_admin, "_apps", {}):
            with self.assertRaises(TransientDeliveryFailure):
                self.transport.send(SUBSCRIPTION, payload())


class TestInitFirebase(unittest.TestCase):
    def setUp(self):
        for patcher in (
            mock.patch.object(push.firebase_admin, "_apps", {}),
            mock.patch.dict(os.environ, {"FIREBASE_SERVICE_ACCOUNT": json.dumps({"private_key": "a\\nb"})}),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_project_id_and_timeout_are_passed_to_the_app(self):
        with mock.patch.object(push, "FIREBASE_PROJECT_ID", "botilyx-prod"), \
                mock.patch.object(push.credentials, "Certificate") as certificate, \
                mock.patch.object(push.firebase_admin, "initialize_app") as initialize_app:
            push.init_firebase()
        self.assertEqual(certificate.call_args.args[0], {"private_key": "a\nb"})
        options = initialize_app.call_args.kwargs["options"]
        self.assertEqual(options["projectId"], "botilyx-prod")
        self.assertIn("httpTimeout", options)

    def test_project_id_is_optional(self):
        with mock.patch.object(push, "FIREBASE_PROJECT_ID", ""), \
                mock.patch.object(push.credentials, "Certificate"), \
                mock.patch.object(push.firebase_admin, "initialize_app") as initialize_app:
            push.init_firebase()
        self.assertNotIn("projectId", initialize_app.call_args.kwargs["options"])


if __name__ == '__main__':
    unittest.main()
