# tests/test_messaging.py
from types import SimpleNamespace

from milli.services.messaging import MessagingService


class RecordingSendGrid:
    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        return SimpleNamespace(status_code=202)


class RecordingTwilio:
    def __init__(self):
        self.created = []
        self.messages = self

    def create(self, **kwargs):
        self.created.append(kwargs)
        return SimpleNamespace(sid="SM123")


def test_unconfigured_channels_do_not_deliver():
    service = MessagingService()
    assert service.send_auth_code("abc", email="kirk@example.com") is False
    assert service.send_auth_code("abc", phone="5551234567") is False
    assert service.send_auth_code("abc") is False


def test_email_preferred_over_sms():
    service = MessagingService()
    service.sg = RecordingSendGrid()
    service.twilio = RecordingTwilio()

    assert service.send_auth_code("abc", email="kirk@example.com", phone="5551234567", invited=True) is True
    assert len(service.sg.messages) == 1
    assert service.twilio.created == []


def test_sms_carries_the_code():
    service = MessagingService()
    service.twilio = RecordingTwilio()

    assert service.send_auth_code("abc-123", phone="5551234567", name="Jim") is True
    sent = service.twilio.created[0]
    assert sent["to"] == "5551234567"
    assert "abc-123" in sent["body"]
    assert sent["body"].startswith("Hi Jim,")
