import smtplib

import config
from email_utils import construir_recordatorio, enviar_recordatorio_reserva


class FakeSMTP:
    sent = []

    def __init__(self, host, port):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.user = user

    def send_message(self, msg):
        FakeSMTP.sent.append((self.host, self.port, msg))


class BrokenSMTP(FakeSMTP):
    def login(self, user, password):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")


def _configure(monkeypatch):
    monkeypatch.setattr(config, "MAIL_USERNAME", "salon@gmail.com")
    monkeypatch.setattr(config, "MAIL_PASSWORD", "secret")
    monkeypatch.setattr(config, "MAIL_FROM", "salon@gmail.com")
    FakeSMTP.sent = []


def test_reminder_body():
    msg = construir_recordatorio(
        "salon@gmail.com", "asha@gmail.com",
        {"fecha": "2025-03-10", "franja": "10:00", "asiento": 2, "servicio": None},
    )
    body = msg.get_content()
    assert msg["To"] == "asha@gmail.com"
    assert "Hi there," in body
    assert "Time slot: 10:00" in body
    assert "Seat: 2" in body
    assert "Service" not in body


def test_reminder_is_not_sent_without_credentials(monkeypatch):
    monkeypatch.setattr(config, "MAIL_USERNAME", None)
    FakeSMTP.sent = []
    assert enviar_recordatorio_reserva("asha@gmail.com", "Asha", "2025-03-10", "10:00", 1,
                                       smtp_factory=FakeSMTP) is False
    assert FakeSMTP.sent == []


def test_reminder_is_sent_through_smtp(monkeypatch):
    _configure(monkeypatch)
    assert enviar_recordatorio_reserva("asha@gmail.com", "Asha", "2025-03-10", "10:00", 1,
                                       servicio="Facial", smtp_factory=FakeSMTP) is True
    host, port, msg = FakeSMTP.sent[0]
    assert (host, port) == (config.MAIL_SERVER, config.MAIL_PORT)
    assert "Service: Facial" in msg.get_content()


def test_smtp_failure_returns_false(monkeypatch):
    _configure(monkeypatch)
    assert enviar_recordatorio_reserva("asha@gmail.com", "Asha", "2025-03-10", "10:00", 1,
                                       smtp_factory=BrokenSMTP) is False
