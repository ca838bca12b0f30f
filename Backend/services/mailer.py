import json
import logging
import smtplib
import socket
from email.mime.text import MIMEText
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError

from config import (
    MAILEROO_API_KEY,
    MAILEROO_API_URL,
    MAILEROO_TIMEOUT_SECONDS,
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_TIMEOUT_SECONDS,
    SMTP_USER,
)
from services.errors import TransientDeliveryFailure

logger = logging.getLogger("botilyx.mailer")

FALLBACK_PORTS = (587, 2525, 465)


class SmtpMailer:
    """Plain-text reminder mail over SMTP, falling back to the Maileroo HTTP API."""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        from_email: str = SMTP_FROM_EMAIL,
        api_key: str = MAILEROO_API_KEY,
        api_url: str = MAILEROO_API_URL,
        smtp_timeout: float = SMTP_TIMEOUT_SECONDS,
        api_timeout: float = MAILEROO_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email or user
        self.api_key = api_key
        self.api_url = api_url
        self.smtp_timeout = smtp_timeout
        self.api_timeout = api_timeout

    @property
    def smtp_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    @property
    def configured(self) -> bool:
        return self.smtp_configured or bool(self.api_key)

    def ports(self) -> list[int]:
        """Configured port first, then the usual submission ports, no repeats."""
        return list(dict.fromkeys([self.port, *FALLBACK_PORTS]))

    def send(self, recipient_email: str, subject: str, body: str) -> None:
        if not recipient_email:
            raise TransientDeliveryFailure("recipient email missing")
        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = recipient_email

        last_exc: Exception | None = None
        if self.smtp_configured:
            for port in self.ports():
                # IPv4 only; some hosts have no IPv6 route to the relay.
                try:
                    addresses = socket.getaddrinfo(self.host, port, socket.AF_INET, socket.SOCK_STREAM)
                except OSError as exc:
                    last_exc = exc
                    logger.warning("Could not resolve %s:%s -> %s", self.host, port, exc)
                    continue
                for address in addresses:
                    try:
                        self._deliver_smtp(address[4][0], port, msg)
                        return
                    except (OSError, smtplib.SMTPException) as exc:
                        last_exc = exc
                logger.warning("Email attempt failed on %s:%s -> %s", self.host, port, last_exc)

        if self.api_key:
            try:
                self._deliver_api(recipient_email, subject, body)
                return
            except RuntimeError as exc:
                last_exc = exc
                logger.warning("Maileroo API fallback failed: %s", exc)
        raise TransientDeliveryFailure(f"email to {recipient_email} failed: {last_exc}") from last_exc

    def _deliver_smtp(self, ip: str, port: int, msg: MIMEText) -> None:
        if port == 465:
            with smtplib.SMTP_SSL(ip, port, timeout=self.smtp_timeout) as server:
                server.login(self.user, self.password)
                server.send_message(msg)
            return
        with smtplib.SMTP(ip, port, timeout=self.smtp_timeout) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            server.login(self.user, self.password)
            server.send_message(msg)

    def _deliver_api(self, recipient_email: str, subject: str, body: str) -> None:
        req = urllib_request.Request(
            self.api_url,
            data=json.dumps({
                "from": {"address": self.from_email},
                "to": [{"address": recipient_email}],
                "subject": subject,
                "text": body,
            }).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
                "X-API-Key": self.api_key,
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.api_timeout) as resp:
                status = getattr(resp, "status", None) or resp.getcode()
                if not 200 <= status < 300:
                    raise RuntimeError(f"Maileroo API returned {status}: {resp.read().decode('utf-8', errors='ignore')}")
        except HTTPError as exc:
            raise RuntimeError(f"Maileroo API HTTP {exc.code}: {exc.read().decode('utf-8', errors='ignore')}") from exc
        except URLError as exc:
            raise RuntimeError(f"Maileroo API unreachable: {exc}") from exc
