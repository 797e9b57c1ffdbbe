"""
Ciclo de vida de las reservas.

    pending -> confirmed -> completed
    pending -> cancelled
    confirmed -> cancelled

La exclusividad de un asiento (salón, fecha, franja, asiento) la garantiza
Mongo: cada reserva no cancelada tiene un documento en `seat_claims` cuyo
_id es esa clave, así que dos inserciones concurrentes no pueden ganar ambas.
"""
import logging
from datetime import datetime, timedelta, timezone

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from availability import parse_calendar_date
from crud import parse_object_id, to_json
from errors import Conflict, InternalError, InvalidState, NotFound, ValidationError
from models import BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

# Un claim sin reserva y más viejo que esto se considera huérfano
ORPHAN_CLAIM_SECONDS = 30

PENDING = BookingStatus.pending.value
CONFIRMED = BookingStatus.confirmed.value
CANCELLED = BookingStatus.cancelled.value
COMPLETED = BookingStatus.completed.value


def seat_key(salon_id, date_str, time_slot, seat_number):
    return f"{salon_id}|{date_str}|{time_slot}|{seat_number}"


def _now():
    return datetime.now(timezone.utc)


class BookingManager:
    def __init__(self, store, schedules):
        self.store = store
        self.schedules = schedules

    # -----------------------
    # CREAR
    # -----------------------
    def create(self, user_id, salon_id, date, time_slot, seat_number, service=None) -> dict:
        day = parse_calendar_date(date, self.schedules.tz)
        try:
            day_schedule = self.schedules.resolve_day(salon_id, day)
        except NotFound as e:
            if e.reason == "closed-on-day":
                raise ValidationError("Salon is closed on this day", reason="closed-on-day")
            raise

        if time_slot not in day_schedule.timeSlots:
            raise ValidationError(f"Time slot '{time_slot}' is not offered on this day", reason="invalid-slot")
        if not 1 <= seat_number <= day_schedule.totalSeats:
            raise ValidationError(
                f"Seat number must be between 1 and {day_schedule.totalSeats}", reason="invalid-seat"
            )

        date_str = day.isoformat()
        booking_id = ObjectId()
        key = seat_key(salon_id, date_str, time_slot, seat_number)
        self._claim_seat(key, booking_id)

        now = _now()
        doc = {
            "_id": booking_id,
            "userId": user_id,
            "salonId": salon_id,
            "date": date_str,
            "timeSlot": time_slot,
            "seatNumber": seat_number,
            "service": service,
            "status": PENDING,
            "paymentStatus": PaymentStatus.pending.value,
            "reminderSent": False,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            self.store.bookings.insert_one(doc)
        except PyMongoError:
            self.store.seat_claims.delete_one({"_id": key, "bookingId": booking_id})
            logger.exception(f"No se pudo guardar la reserva {booking_id}; asiento liberado")
            raise InternalError("Could not store booking", reason="storage")

        logger.info(f"Reserva {booking_id}: (nueva) -> {PENDING} [{key}]")
        return to_json(doc)

    def _claim_seat(self, key, booking_id):
        claim = {"_id": key, "bookingId": booking_id, "createdAt": _now()}
        try:
            self.store.seat_claims.insert_one(claim)
            return
        except DuplicateKeyError:
            pass

        if not self._release_orphan_claim(key):
            raise Conflict("Seat already booked for this slot", reason="seat-taken")
        try:
            self.store.seat_claims.insert_one(claim)
        except DuplicateKeyError:
            raise Conflict("Seat already booked for this slot", reason="seat-taken")

    def _release_orphan_claim(self, key):
        existing = self.store.seat_claims.find_one({"_id": key})
        if existing is None:
            return True
        holder = self.store.bookings.find_one({"_id": existing["bookingId"]}, {"status": 1})
        if holder is not None and holder["status"] != CANCELLED:
            return False
        if holder is None:
            # Sin reserva todavía: puede ser un create en curso
            created = existing.get("createdAt")
            if created is not None and created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            if created is not None and _now() - created < timedelta(seconds=ORPHAN_CLAIM_SECONDS):
                return False
        result = self.store.seat_claims.delete_one({"_id": key, "bookingId": existing["bookingId"]})
        if result.deleted_count:
            logger.warning(f"Claim huérfano liberado: {key}")
        return True

    # -----------------------
    # TRANSICIONES
    # -----------------------
    def confirm(self, booking_id) -> dict:
        return self._transition(
            booking_id, (PENDING,), CONFIRMED, {"paymentStatus": PaymentStatus.paid.value}
        )

    def cancel_unpaid(self, booking_id) -> dict:
        current = self._get(booking_id)
        if current["status"] == CANCELLED:
            logger.info(f"Reserva {booking_id}: ya estaba {CANCELLED}, sin cambios")
            return to_json(current)
        return self._transition(booking_id, (PENDING,), CANCELLED)

    def cancel(self, booking_id) -> dict:
        return self._transition(booking_id, (PENDING, CONFIRMED), CANCELLED)

    def complete(self, booking_id) -> dict:
        return self._transition(booking_id, (CONFIRMED,), COMPLETED)

    def _transition(self, booking_id, allowed, target, extra=None):
        oid = parse_object_id(booking_id)
        if oid is None:
            raise NotFound("Booking not found", reason="booking")

        update = {"status": target, "updatedAt": _now()}
        update.update(extra or {})
        before = self.store.bookings.find_one_and_update(
            {"_id": oid, "status": {"$in": list(allowed)}},
            {"$set": update},
            return_document=ReturnDocument.BEFORE,
        )
        if before is None:
            current = self._get(booking_id)
            logger.warning(
                f"Reserva {booking_id}: transición rechazada {current['status']} -> {target}"
            )
            raise InvalidState(
                f"Cannot move booking from '{current['status']}' to '{target}'",
                reason="invalid-transition",
            )

        if target == CANCELLED:
            key = seat_key(before["salonId"], before["date"], before["timeSlot"], before["seatNumber"])
            self.store.seat_claims.delete_one({"_id": key, "bookingId": oid})

        logger.info(f"Reserva {booking_id}: {before['status']} -> {target}")
        before.update(update)
        return to_json(before)

    # -----------------------
    # CONSULTAS
    # -----------------------
    def _get(self, booking_id):
        oid = parse_object_id(booking_id)
        doc = self.store.bookings.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("Booking not found", reason="booking")
        return doc

    def get(self, booking_id) -> dict:
        return to_json(self._get(booking_id))

    def list_for_user(self, user_id):
        cursor = self.store.bookings.find({"userId": user_id}).sort(
            [("createdAt", DESCENDING), ("_id", DESCENDING)]
        )
        return [to_json(b) for b in cursor]

    def list_for_salon(self, salon_id):
        cursor = self.store.bookings.find({"salonId": salon_id}).sort(
            [("createdAt", DESCENDING), ("_id", DESCENDING)]
        )
        return [to_json(b) for b in cursor]

    # -----------------------
    # VENCIDAS SIN PAGO
    # -----------------------
    def sweep_unpaid(self, grace_minutes, now=None):
        """Cancela las reservas pendientes creadas hace más de `grace_minutes`."""
        now = now or _now()
        limit = now - timedelta(minutes=grace_minutes)
        expired = list(self.store.bookings.find(
            {"status": PENDING, "createdAt": {"$lte": limit}}, {"_id": 1}
        ))
        cancelled = 0
        for b in expired:
            try:
                self.cancel_unpaid(str(b["_id"]))
                cancelled += 1
            except InvalidState as e:
                # Se confirmó entre la consulta y la cancelación
                logger.info(f"Reserva {b['_id']} no cancelada: {e.message}")
        return cancelled
