"""Outbound SMS through Twilio's Messages REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import requests

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"


@dataclass(frozen=True)
class SmsResult:
    ok: bool
    provider_id: str | None = None
    error: str | None = None


class SmsSender(Protocol):
    def send(self, to_number: str, body: str) -> SmsResult: ...


class TwilioSmsSender:
    """Send a text message; failures come back as ``SmsResult(ok=False)``."""

    provider = "twilio"

    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._timeout = timeout
        self._session = session or requests.Session()

    def send(self, to_number: str, body: str) -> SmsResult:
        url = TWILIO_MESSAGES_URL.format(account_sid=self._account_sid)
        data = {"To": to_number, "From": self._from_number, "Body": body}
        try:
            response = self._session.post(
                url,
                data=data,
                auth=(self._account_sid, self._auth_token),
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Twilio delivery failed: %s", exc)
            return SmsResult(ok=False, error=str(exc))
        return SmsResult(ok=True, provider_id=payload.get("sid"))


class DisabledSmsSender:
    """Used when Twilio is not configured; every send reports a failure."""

    provider = "disabled"

    def send(self, to_number: str, body: str) -> SmsResult:
        return SmsResult(ok=False, error="SMS delivery is not configured")
