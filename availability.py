"""
Agenda semanal por salón y cálculo de asientos libres.

El cálculo es una lectura pura: horario del día + reservas no canceladas
de esa fecha -> grilla {franja: [{seatNumber, status}]}.
"""
import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from pymongo.errors import DuplicateKeyError

from errors import Conflict, NotFound, ValidationError
from models import WEEKDAYS, BookingStatus, DaySchedule, SeatStatus, WeeklySchedule

logger = logging.getLogger(__name__)


def parse_calendar_date(value, tz=timezone.utc):
    """
    Devuelve el día calendario de `value`.
    Acepta date, datetime o texto ISO ("2025-03-10", "2025-03-10T09:00:00Z").
    Un datetime con zona se lleva primero a `tz`.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return value
    else:
        text = str(value).strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", reason="invalid-date")
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz)
    return dt.date()


def weekday_name(day: date) -> str:
    # Calendario gregoriano, sin depender del locale del proceso
    return WEEKDAYS[day.weekday()]


class ScheduleService:
    def __init__(self, store, tz="UTC"):
        self.store = store
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    # -----------------------
    # HORARIO SEMANAL
    # -----------------------
    def add_schedule(self, schedule: WeeklySchedule) -> dict:
        if self.store.schedules.find_one({"salonId": schedule.salonId}):
            raise Conflict("Schedule already exists, update instead.", reason="schedule-exists")
        doc = schedule.model_dump()
        try:
            self.store.schedules.insert_one(doc)
        except DuplicateKeyError:
            raise Conflict("Schedule already exists, update instead.", reason="schedule-exists")
        logger.info(f"Horario creado para salón {schedule.salonId}")
        return doc

    def replace_schedule(self, salon_id: str, days) -> dict:
        schedule = WeeklySchedule(salonId=salon_id, weeklySchedule=days)
        doc = schedule.model_dump()
        result = self.store.schedules.replace_one({"salonId": salon_id}, doc)
        if result.matched_count == 0:
            raise NotFound("No schedule found for this salon", reason="schedule")
        logger.info(f"Horario reemplazado para salón {salon_id}")
        return doc

    def get_schedule(self, salon_id: str) -> WeeklySchedule:
        doc = self.store.schedules.find_one({"salonId": salon_id})
        if not doc:
            raise NotFound("No schedule found for this salon", reason="schedule")
        doc.pop("_id", None)
        return WeeklySchedule(**doc)

    def resolve_day(self, salon_id: str, day) -> DaySchedule:
        day = parse_calendar_date(day, self.tz)
        schedule = self.get_schedule(salon_id)
        day_schedule = schedule.day(weekday_name(day))
        if day_schedule is None:
            raise NotFound("Salon is closed on this day", reason="closed-on-day")
        return day_schedule

    # -----------------------
    # DISPONIBILIDAD
    # -----------------------
    def compute_availability(self, salon_id: str, day) -> dict:
        day = parse_calendar_date(day, self.tz)
        day_schedule = self.resolve_day(salon_id, day)
        date_str = day.isoformat()

        bookings = self.store.bookings.find({
            "salonId": salon_id,
            "date": date_str,
            "status": {"$ne": BookingStatus.cancelled.value},
        })

        booked = {slot: set() for slot in day_schedule.timeSlots}
        for b in bookings:
            slot = b.get("timeSlot")
            seat = b.get("seatNumber")
            if slot not in booked:
                logger.warning(
                    f"Reserva {b.get('_id')} con franja desconocida '{slot}' "
                    f"(salón {salon_id}, {date_str})"
                )
                continue
            if not isinstance(seat, int) or not 1 <= seat <= day_schedule.totalSeats:
                logger.warning(
                    f"Reserva {b.get('_id')} con asiento fuera de rango {seat} "
                    f"(salón {salon_id}, {date_str}, {slot})"
                )
                continue
            booked[slot].add(seat)

        available_slots = {}
        for slot in day_schedule.timeSlots:
            available_slots[slot] = [
                {
                    "seatNumber": seat,
                    "status": (SeatStatus.booked if seat in booked[slot] else SeatStatus.available).value,
                }
                for seat in range(1, day_schedule.totalSeats + 1)
            ]
        return available_slots
