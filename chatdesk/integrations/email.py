"""Outbound email for operator handoff notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import requests

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass(frozen=True)
class EmailResult:
    ok: bool
    provider_id: str | None = None
    error: str | None = None


class EmailSender(Protocol):
    def send(self, to: str, subject: str, body: str) -> EmailResult: ...


class SendGridEmailSender:
    """Send plain-text mail through the SendGrid v3 API. Never raises."""

    provider = "sendgrid"

    def __init__(
        self,
        *,
        api_key: str,
        from_address: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        url: str = SENDGRID_SEND_URL,
    ) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._timeout = timeout
        self._session = session or requests.Session()
        self._url = url

    def send(self, to: str, subject: str, body: str) -> EmailResult:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._from_address},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            response = self._session.post(
                self._url, json=payload, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("SendGrid delivery to %s failed: %s", to, exc)
            return EmailResult(ok=False, error=str(exc))
        return EmailResult(ok=True, provider_id=response.headers.get("X-Message-Id"))


class LoggingEmailSender:
    """Fallback used when no mail provider is configured; logs instead of sending."""

    provider = "log"

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> EmailResult:
        self.sent.append((to, subject, body))
        logger.info("Email delivery is not configured; would send %r to %s", subject, to)
        return EmailResult(ok=True, provider_id=None)
