"""
WhatsApp delivery
=================

Providers share one interface so routes never care whether messages go to
Twilio or only to the log:

    provider = get_provider()
    sid = provider.send("+919876543210", {"recipientName": "Asha", ...})

`TwilioProvider` posts a templated content message through the Twilio REST
API. `LogOnlyProvider` is used when no credentials are configured (local
development and tests) and keeps what it was asked to send in `sent`.
"""

import json
import re
import uuid
from abc import ABC, abstractmethod
from typing import Optional

import requests
from flask import current_app

from logger import get_logger

logger = get_logger(__name__)

# Template slots, in ContentVariables order ("1".."7").
TEMPLATE_FIELDS = ("recipientName", "senderName", "subject", "message", "note", "contact", "dateTime")


class WhatsAppError(Exception):
    """Raised when the provider refuses or fails to deliver a message."""


def normalize_number(raw) -> Optional[str]:
    digits = re.sub(r"\D", "", str(raw or ""))
    if len(digits) < 8:
        return None
    return f"+{digits}"


def content_variables(values: dict) -> dict:
    return {str(i): str(values.get(field) or "") for i, field in enumerate(TEMPLATE_FIELDS, start=1)}


class MessagingProvider(ABC):
    """Abstract base class for WhatsApp providers."""

    name = "base"

    @abstractmethod
    def send(self, to: str, variables: dict) -> str:
        """Send a templated message. Returns the provider message id."""
        ...


def _json_object(resp):
    try:
        body = resp.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class TwilioProvider(MessagingProvider):
    name = "twilio"

    def __init__(self, account_sid: str, auth_token: str, from_number: str,
                 content_sid: str, api_url: str = "https://api.twilio.com", timeout: float = 10):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from = normalize_number(from_number)
        self._content_sid = content_sid
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

    def send(self, to: str, variables: dict) -> str:
        number = normalize_number(to)
        if not number:
            raise WhatsAppError(f"Invalid WhatsApp number: {to!r}")

        url = f"{self._api_url}/2010-04-01/Accounts/{self._account_sid}/Messages.json"
        data = {
            "From": f"whatsapp:{self._from}",
            "To": f"whatsapp:{number}",
            "ContentSid": self._content_sid,
            "ContentVariables": json.dumps(content_variables(variables)),
        }
        try:
            resp = requests.post(url, data=data, auth=(self._account_sid, self._auth_token),
                                 timeout=self._timeout)
        except requests.RequestException as e:
            raise WhatsAppError(f"Twilio request failed: {e}") from e

        body = _json_object(resp)
        if resp.status_code >= 400:
            detail = body.get("message") if body is not None else resp.text[:200]
            raise WhatsAppError(f"Twilio error {resp.status_code}: {detail}")
        if body is None:
            raise WhatsAppError(f"Twilio returned an unreadable reply ({resp.status_code})")

        sid = body.get("sid") or ""
        logger.info("WhatsApp sent to %s (sid=%s)", number, sid)
        return sid


class LogOnlyProvider(MessagingProvider):
    name = "log"

    def __init__(self):
        self.sent = []

    def send(self, to: str, variables: dict) -> str:
        number = normalize_number(to)
        if not number:
            raise WhatsAppError(f"Invalid WhatsApp number: {to!r}")
        sid = f"LOG{uuid.uuid4().hex[:16]}"
        self.sent.append({"to": number, "variables": content_variables(variables), "sid": sid})
        logger.info("WhatsApp (log only) to %s: %s", number, variables.get("subject") or "")
        return sid


def build_provider(config) -> MessagingProvider:
    if config.get("TWILIO_ACCOUNT_SID") and config.get("TWILIO_AUTH_TOKEN") and config.get("TWILIO_WHATSAPP_NUMBER"):
        return TwilioProvider(
            account_sid=config["TWILIO_ACCOUNT_SID"],
            auth_token=config["TWILIO_AUTH_TOKEN"],
            from_number=config["TWILIO_WHATSAPP_NUMBER"],
            content_sid=config.get("TWILIO_WHATSAPP_CONTENT_SID", ""),
            api_url=config.get("TWILIO_API_URL", "https://api.twilio.com"),
            timeout=config.get("WHATSAPP_TIMEOUT", 10),
        )
    logger.warning("Twilio credentials missing; WhatsApp messages will only be logged")
    return LogOnlyProvider()


def init_app(app):
    app.extensions["whatsapp"] = build_provider(app.config)


def get_provider() -> MessagingProvider:
    return current_app.extensions["whatsapp"]
