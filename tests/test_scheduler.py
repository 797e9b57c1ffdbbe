from datetime import date, datetime, timedelta, timezone

import config
from database import UserSQL, create_session_factory, create_sql_engine, create_tables
from scheduler import cancelar_reservas_sin_pago, enviar_recordatorios, hoy_en_salon

from conftest import MONDAY


class FakeMailer:
    def __init__(self, ok=True):
        self.ok = ok
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return self.ok


def _sessions_with_user(email="asha@gmail.com"):
    engine = create_sql_engine("sqlite://")
    create_tables(engine)
    factory = create_session_factory(engine)
    db_sql = factory()
    user = UserSQL(phone="7000000001", name="Asha", email=email, role="user", referral_code="SALON1234")
    db_sql.add(user)
    db_sql.commit()
    user_id = user.id
    db_sql.close()
    return factory, user_id


def test_reminders_for_tomorrow_confirmed_bookings(manager, store):
    factory, user_id = _sessions_with_user()
    confirmed = manager.create(str(user_id), "salon-1", MONDAY, "10:00", 1, service="Facial")
    manager.confirm(confirmed["_id"])
    manager.create(str(user_id), "salon-1", MONDAY, "11:00", 1)
    manager.create("anonymous", "salon-1", MONDAY, "11:00", 2)

    mailer = FakeMailer()
    sunday = date(2025, 3, 9)
    assert enviar_recordatorios(store, factory, send=mailer, today=sunday) == 1
    assert mailer.calls[0]["destinatario"] == "asha@gmail.com"
    assert mailer.calls[0]["franja"] == "10:00"
    assert mailer.calls[0]["servicio"] == "Facial"

    # Ya marcada: no se reenvía
    assert enviar_recordatorios(store, factory, send=mailer, today=sunday) == 0


def test_failed_reminder_is_retried_later(manager, store):
    factory, user_id = _sessions_with_user()
    booking = manager.create(str(user_id), "salon-1", MONDAY, "10:00", 1)
    manager.confirm(booking["_id"])

    sunday = date(2025, 3, 9)
    assert enviar_recordatorios(store, factory, send=FakeMailer(ok=False), today=sunday) == 0
    assert enviar_recordatorios(store, factory, send=FakeMailer(), today=sunday) == 1


def test_unpaid_job_uses_grace_window(manager, store):
    booking = manager.create("u1", "salon-1", MONDAY, "10:00", 1)
    assert cancelar_reservas_sin_pago(manager, 10) == 0
    # Ventana de gracia en cero: toda pendiente ya venció
    store.bookings.update_one(
        {"status": "pending"},
        {"$set": {"createdAt": datetime.now(timezone.utc) - timedelta(minutes=1)}},
    )
    assert cancelar_reservas_sin_pago(manager, 0) == 1
    assert manager.get(booking["_id"])["status"] == "cancelled"


def test_reminder_day_follows_salon_timezone(store, monkeypatch):
    factory, user_id = _sessions_with_user()
    # UTC+14 y UTC-12 nunca comparten fecha
    tomorrow = hoy_en_salon("Pacific/Kiritimati") + timedelta(days=1)
    store.bookings.insert_one({
        "userId": str(user_id),
        "salonId": "salon-1",
        "date": tomorrow.isoformat(),
        "timeSlot": "10:00",
        "seatNumber": 1,
        "status": "confirmed",
        "reminderSent": False,
    })

    mailer = FakeMailer()
    assert enviar_recordatorios(store, factory, send=mailer, tz="Etc/GMT+12") == 0
    monkeypatch.setattr(config, "SALON_TIMEZONE", "Pacific/Kiritimati")
    assert enviar_recordatorios(store, factory, send=mailer) == 1
    assert mailer.calls[0]["fecha"] == tomorrow.isoformat()
