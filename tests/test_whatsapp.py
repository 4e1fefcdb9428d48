import json

import pytest
import requests

import whatsapp
from models import db, User, WhatsappMessageLog
from notify import send_whatsapp, notify_user
from whatsapp import (
    TwilioProvider, LogOnlyProvider, WhatsAppError, build_provider,
    normalize_number, content_variables,
)


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class UnreadableResponse:
    status_code = 201
    text = "<html>ok</html>"

    def json(self):
        raise ValueError("not json")


class FailingProvider(whatsapp.MessagingProvider):
    def send(self, to, variables):
        raise WhatsAppError("Twilio error 400: invalid recipient")


def test_normalize_number():
    assert normalize_number("+91 98765-43210") == "+919876543210"
    assert normalize_number("whatsapp:+14155550100") == "+14155550100"
    assert normalize_number("12345") is None
    assert normalize_number(None) is None


def test_content_variables_fill_every_slot():
    values = content_variables({"recipientName": "Asha", "subject": "Hi"})
    assert list(values) == ["1", "2", "3", "4", "5", "6", "7"]
    assert values["1"] == "Asha"
    assert values["3"] == "Hi"
    assert values["4"] == ""


def test_build_provider_picks_twilio_when_configured():
    provider = build_provider({
        "TWILIO_ACCOUNT_SID": "AC123", "TWILIO_AUTH_TOKEN": "token",
        "TWILIO_WHATSAPP_NUMBER": "+14155550100", "TWILIO_WHATSAPP_CONTENT_SID": "HX1",
    })
    assert isinstance(provider, TwilioProvider)
    assert isinstance(build_provider({}), LogOnlyProvider)


def test_twilio_provider_posts_template(monkeypatch):
    calls = []

    def fake_post(url, data=None, auth=None, timeout=None):
        calls.append({"url": url, "data": data, "auth": auth, "timeout": timeout})
        return FakeResponse(201, {"sid": "SM123"})

    monkeypatch.setattr(requests, "post", fake_post)
    provider = TwilioProvider("AC123", "token", "+14155550100", "HX1", timeout=3)
    sid = provider.send("+91 98765 43210", {"recipientName": "Asha", "message": "Hello"})

    assert sid == "SM123"
    call = calls[0]
    assert call["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert call["auth"] == ("AC123", "token")
    assert call["timeout"] == 3
    assert call["data"]["From"] == "whatsapp:+14155550100"
    assert call["data"]["To"] == "whatsapp:+919876543210"
    assert call["data"]["ContentSid"] == "HX1"
    assert json.loads(call["data"]["ContentVariables"])["4"] == "Hello"


def test_twilio_provider_raises_on_http_error(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(400, {"message": "Invalid To"}))
    provider = TwilioProvider("AC123", "token", "+14155550100", "HX1")
    with pytest.raises(WhatsAppError, match="Invalid To"):
        provider.send("+919876543210", {})


def test_twilio_provider_wraps_network_errors(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(requests, "post", boom)
    provider = TwilioProvider("AC123", "token", "+14155550100", "HX1")
    with pytest.raises(WhatsAppError):
        provider.send("+919876543210", {})
    with pytest.raises(WhatsAppError):
        provider.send("123", {})


def test_send_whatsapp_records_failure(app, ids):
    with app.app_context():
        app.extensions["whatsapp"] = FailingProvider()
        sender = db.session.get(User, ids["coordinator"])
        recipient = db.session.get(User, ids["member1"])
        log = send_whatsapp(sender, recipient, "Subject", "Body")
        db.session.commit()
        assert log.status == "failed"
        assert "invalid recipient" in log.error


def test_send_whatsapp_respects_opt_out(app, ids, whatsapp_outbox):
    with app.app_context():
        recipient = db.session.get(User, ids["member1"])
        recipient.whatsapp_enabled = False
        log = send_whatsapp(None, recipient, "Subject", "Body")
        assert log.status == "skipped"
        assert log.error == "WhatsApp disabled"
    assert whatsapp_outbox == []


def test_notify_user_without_chat(app, ids, whatsapp_outbox):
    with app.app_context():
        actor = db.session.get(User, ids["admin"])
        recipient = db.session.get(User, ids["member1"])
        notify_user(actor, recipient, "Reminder", "Submit the report", chat=False, type="reminder")
        db.session.commit()
        assert WhatsappMessageLog.query.filter_by(status="sent").count() == 1
    assert whatsapp_outbox[0]["variables"]["2"] == "Admin"
    assert whatsapp_outbox[0]["variables"]["6"] == "admin@example.com"


@pytest.mark.parametrize("reply", [UnreadableResponse(), FakeResponse(201, ["SM123"])])
def test_twilio_provider_rejects_unreadable_success_reply(monkeypatch, reply):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: reply)
    provider = TwilioProvider("AC123", "token", "+14155550100", "HX1")
    with pytest.raises(WhatsAppError, match="unreadable reply"):
        provider.send("+919876543210", {})


def test_twilio_error_reply_that_is_not_an_object(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(500, ["boom"]))
    provider = TwilioProvider("AC123", "token", "+14155550100", "HX1")
    with pytest.raises(WhatsAppError, match="Twilio error 500"):
        provider.send("+919876543210", {})


def test_send_whatsapp_records_unreadable_reply_as_failed(app, ids, monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: UnreadableResponse())
    with app.app_context():
        app.extensions["whatsapp"] = TwilioProvider("AC123", "token", "+14155550100", "HX1")
        sender = db.session.get(User, ids["coordinator"])
        recipient = db.session.get(User, ids["member1"])
        log = send_whatsapp(sender, recipient, "Subject", "Body")
        db.session.commit()
        assert log.status == "failed"
        assert "unreadable reply" in log.error
