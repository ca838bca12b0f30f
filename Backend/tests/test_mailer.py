import json
import socket
import unittest
from unittest import mock
from urllib.error import URLError

from services import mailer as mailer_module
from services.errors import TransientDeliveryFailure
from services.mailer import SmtpMailer


def resolve(host, port, family=0, type=0):
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.1", port))]


def smtp_mailer(**overrides):
    values = dict(
        host="smtp.example.com",
        port=2525,
        user="reminders@example.com",
        password="secret",
        from_email="reminders@example.com",
        api_key="",
        api_url="https://mail.example.com/api",
        smtp_timeout=3,
        api_timeout=5,
    )
    values.update(overrides)
    return SmtpMailer(**values)


def api_response(status=202):
    response = mock.MagicMock()
    response.status = status
    response.__enter__.return_value = response
    return response


class MailerTestCase(unittest.TestCase):
    def setUp(self):
        self.getaddrinfo = self.patch("socket.getaddrinfo", side_effect=resolve)
        self.smtp = self.patch("smtplib.SMTP")
        self.smtp_ssl = self.patch("smtplib.SMTP_SSL")
        self.urlopen = self.patch("urllib_request.urlopen")

    def patch(self, target, **kwargs):
        module_name, attribute = target.split(".")
        patcher = mock.patch.object(getattr(mailer_module, module_name), attribute, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def smtp_refuses(self):
        self.smtp.side_effect = ConnectionRefusedError("refused")
        self.smtp_ssl.side_effect = ConnectionRefusedError("refused")


class TestConfiguration(unittest.TestCase):
    def test_not_configured_without_smtp_or_api_key(self):
        self.assertFalse(smtp_mailer(host="", user="", password="").configured)
        self.assertFalse(smtp_mailer(password="").configured)

    def test_api_key_alone_is_enough(self):
        self.assertTrue(smtp_mailer(host="", user="", password="", api_key="k").configured)

    def test_port_order_without_repeats(self):
        self.assertEqual(smtp_mailer(port=2525).ports(), [2525, 587, 465])
        self.assertEqual(smtp_mailer(port=25).ports(), [25, 587, 2525, 465])


class TestSmtpDelivery(MailerTestCase):
    def test_sends_over_configured_port_with_starttls(self):
        smtp_mailer().send("ana@example.com", "Medication reminder - Ibuprofen", "Time to take it")

        self.assertEqual(self.smtp.call_args.args, ("10.0.0.1", 2525))
        self.assertEqual(self.smtp.call_args.kwargs["timeout"], 3)
        server = self.smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("reminders@example.com", "secret")
        sent = server.send_message.call_args.args[0]
        self.assertEqual(sent["To"], "ana@example.com")
        self.assertEqual(sent["Subject"], "Medication reminder - Ibuprofen")
        self.urlopen.assert_not_called()

    def test_tries_every_port_in_order(self):
        self.smtp_refuses()
        with self.assertLogs("botilyx.mailer", level="WARNING"):
            with self.assertRaises(TransientDeliveryFailure):
                smtp_mailer(port=2525).send("ana@example.com", "s", "b")

        tried = [c.args[1] for c in self.getaddrinfo.call_args_list]
        self.assertEqual(tried, [2525, 587, 465])
        self.assertEqual([c.args[1] for c in self.smtp.call_args_list], [2525, 587])
        self.assertEqual([c.args[1] for c in self.smtp_ssl.call_args_list], [465])

    def test_ssl_port_succeeds_after_plain_ports_fail(self):
        self.smtp.side_effect = ConnectionRefusedError("refused")
        with self.assertLogs("botilyx.mailer", level="WARNING"):
            smtp_mailer(port=587).send("ana@example.com", "s", "b")
        self.smtp_ssl.return_value.__enter__.return_value.send_message.assert_called_once()

    def test_missing_recipient_raises(self):
        with self.assertRaises(TransientDeliveryFailure):
            smtp_mailer().send("", "s", "b")
        self.smtp.assert_not_called()


class TestApiFallback(MailerTestCase):
    def test_falls_back_to_api_after_every_port_fails(self):
        self.smtp_refuses()
        self.urlopen.return_value = api_response(202)
        with self.assertLogs("botilyx.mailer", level="WARNING"):
            smtp_mailer(api_key="k-123").send("ana@example.com", "Low stock", "Running low")

        self.assertEqual(self.smtp.call_count + self.smtp_ssl.call_count, 3)
        request = self.urlopen.call_args.args[0]
        self.assertEqual(self.urlopen.call_args.kwargs["timeout"], 5)
        self.assertEqual(request.full_url, "https://mail.example.com/api")
        self.assertEqual(request.get_header("Authorization"), "Bearer k-123")
        payload = json.loads(request.data)
        self.assertEqual(payload["to"], [{"address": "ana@example.com"}])
        self.assertEqual(payload["subject"], "Low stock")

    def test_api_only_configuration_skips_smtp(self):
        self.urlopen.return_value = api_response(200)
        smtp_mailer(host="", user="", password="", api_key="k").send("ana@example.com", "s", "b")
        self.getaddrinfo.assert_not_called()
        self.urlopen.assert_called_once()

    def test_both_paths_failing_raises_transient_failure(self):
        self.smtp_refuses()
        self.urlopen.side_effect = URLError("connection reset")
        with self.assertLogs("botilyx.mailer", level="WARNING") as logs:
            with self.assertRaises(TransientDeliveryFailure) as ctx:
                smtp_mailer(api_key="k").send("ana@example.com", "s", "b")
        self.assertIn("ana@example.com", str(ctx.exception))
        self.assertTrue(any("Maileroo API fallback failed" in line for line in logs.output))

    def test_non_success_status_is_a_failure(self):
        self.smtp_refuses()
        self.urlopen.return_value = api_response(500)
        with self.assertLogs("botilyx.mailer", level="WARNING"):
            with self.assertRaises(TransientDeliveryFailure):
                smtp_mailer(api_key="k").send("ana@example.com", "s", "b")


if __name__ == '__main__':
    unittest.main()
