import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler

import config
from bookings import CONFIRMED
from database import UserSQL
from email_utils import enviar_recordatorio_reserva

logger = logging.getLogger(__name__)


def cancelar_reservas_sin_pago(manager, grace_minutes):
    cancelled = manager.sweep_unpaid(grace_minutes)
    if cancelled:
        logger.info(f"Reservas sin pago canceladas: {cancelled}")
    return cancelled


def hoy_en_salon(tz=None):
    return datetime.now(ZoneInfo(tz or config.SALON_TIMEZONE)).date()


def enviar_recordatorios(store, session_factory, send=enviar_recordatorio_reserva, today=None, tz=None):
    logger.info("Revisando reservas para enviar recordatorios...")
    # "Mañana" según la zona del salón, no la del host
    today = today or hoy_en_salon(tz)
    manana = (today + timedelta(days=1)).isoformat()

    # Reservas confirmadas para mañana (Mongo)
    reservas = store.bookings.find({
        "date": manana,
        "status": CONFIRMED,
        "reminderSent": {"$ne": True},
    })

    enviados = 0
    # El correo del usuario vive en SQL
    db_sql = session_factory()
    try:
        for reserva in reservas:
            user_id = str(reserva.get("userId", ""))
            if not user_id.isdigit():
                continue
            user = db_sql.get(UserSQL, int(user_id))
            if not user or not user.email:
                continue

            if send(
                destinatario=user.email,
                nombre_cliente=user.name,
                fecha=reserva["date"],
                franja=reserva["timeSlot"],
                asiento=reserva["seatNumber"],
                servicio=reserva.get("service"),
            ):
                store.bookings.update_one({"_id": reserva["_id"]}, {"$set": {"reminderSent": True}})
                enviados += 1
    finally:
        # Cerramos la conexión SQL pase lo que pase
        db_sql.close()

    logger.info(f"Recordatorios enviados: {enviados}")
    return enviados


def iniciar_scheduler(manager, store, session_factory, grace_minutes=None):
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        cancelar_reservas_sin_pago,
        "interval",
        seconds=config.UNPAID_SWEEP_SECONDS,
        args=[manager, grace_minutes if grace_minutes is not None else config.UNPAID_GRACE_MINUTES],
        id="cancel_unpaid_bookings",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        enviar_recordatorios,
        "interval",
        minutes=config.REMINDER_SWEEP_MINUTES,
        args=[store, session_factory],
        id="send_booking_reminders",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler iniciado (reservas sin pago + recordatorios).")
    return scheduler
