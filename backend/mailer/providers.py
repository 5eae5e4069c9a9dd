"""Outbound email providers.

The active provider is resolved once from configuration. An explicit
``EMAIL_PROVIDER`` wins; otherwise the first configured key decides
(Resend, then SendGrid) and the log-only test provider is the fallback.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

import httpx
from django.conf import settings
from loguru import logger

RESEND_URL = "https://api.resend.com/emails"
SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass(frozen=True)
class OutgoingEmail:
    to_email: str
    to_name: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class ProviderResponse:
    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailProvider(Protocol):
    name: str
    description: str
    configured: bool

    def send(self, message: OutgoingEmail) -> ProviderResponse:
        ...


def _sender() -> str:
    return f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"


class ResendProvider:
    name = "resend"
    description = "Resend transactional email API"
    configured = True

    def __init__(self, api_key: str, timeout: float = 15.0, client: httpx.Client | None = None):
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, message: OutgoingEmail) -> ProviderResponse:
        try:
            response = self._client.post(
                RESEND_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "from": _sender(),
                    "to": [message.to_email],
                    "subject": message.subject,
                    "html": message.html,
                    "text": message.text,
                },
            )
            response.raise_for_status()
            return ProviderResponse(success=True, message_id=response.json().get("id"))
        except httpx.HTTPStatusError as exc:
            logger.warning("Resend rejected email to {}: {}", message.to_email, exc.response.text)
            return ProviderResponse(success=False, error=f"Resend error: {exc.response.status_code}")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Resend request failed for {}: {}", message.to_email, exc)
            return ProviderResponse(success=False, error=str(exc))


class SendGridProvider:
    name = "sendgrid"
    description = "SendGrid v3 mail API"
    configured = True

    def __init__(self, api_key: str, timeout: float = 15.0, client: httpx.Client | None = None):
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, message: OutgoingEmail) -> ProviderResponse:
        payload = {
            "personalizations": [
                {"to": [{"email": message.to_email, "name": message.to_name or message.to_email}]}
            ],
            "from": {"email": settings.EMAIL_FROM_ADDRESS, "name": settings.EMAIL_FROM_NAME},
            "subject": message.subject,
            "content": [
                {"type": "text/plain", "value": message.text},
                {"type": "text/html", "value": message.html},
            ],
        }
        try:
            response = self._client.post(
                SENDGRID_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=payload,
            )
            response.raise_for_status()
            return ProviderResponse(success=True, message_id=response.headers.get("x-message-id"))
        except httpx.HTTPStatusError as exc:
            logger.warning("SendGrid rejected email to {}: {}", message.to_email, exc.response.text)
            return ProviderResponse(success=False, error=f"SendGrid error: {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.warning("SendGrid request failed for {}: {}", message.to_email, exc)
            return ProviderResponse(success=False, error=str(exc))


class ConsoleProvider:
    """Logs the message instead of sending it."""

    name = "test"
    description = "Test mode: emails are logged, not delivered"
    configured = False

    def send(self, message: OutgoingEmail) -> ProviderResponse:
        logger.info("Test email to {} <{}>: {}", message.to_name, message.to_email, message.subject)
        return ProviderResponse(success=True, message_id=None)


class UnconfiguredProvider:
    configured = False

    def __init__(self, name: str):
        self.name = name
        self.description = f"{name} selected but no API key is configured"

    def send(self, message: OutgoingEmail) -> ProviderResponse:
        return ProviderResponse(success=False, error=f"Email provider '{self.name}' is not configured")


def build_email_provider() -> EmailProvider:
    timeout = settings.HTTP_TIMEOUT_SECONDS
    resend_key = settings.RESEND_API_KEY
    sendgrid_key = settings.SENDGRID_API_KEY
    explicit = settings.EMAIL_PROVIDER

    if explicit == "resend":
        return ResendProvider(resend_key, timeout) if resend_key else UnconfiguredProvider("resend")
    if explicit == "sendgrid":
        return SendGridProvider(sendgrid_key, timeout) if sendgrid_key else UnconfiguredProvider("sendgrid")
    if explicit == "test":
        return ConsoleProvider()

    if resend_key:
        return ResendProvider(resend_key, timeout)
    if sendgrid_key:
        return SendGridProvider(sendgrid_key, timeout)
    return ConsoleProvider()


@lru_cache(maxsize=1)
def get_email_provider() -> EmailProvider:
    provider = build_email_provider()
    logger.info("Email provider selected: {}", provider.name)
    return provider
