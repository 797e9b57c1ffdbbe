import mongomock
import pytest
from fastapi.testclient import TestClient

from availability import ScheduleService
from bookings import BookingManager
from database import create_mongo_store
from main import create_app
from models import WeeklySchedule

# 2025-03-10 es lunes, 2025-03-11 martes
MONDAY = "2025-03-10"
TUESDAY = "2025-03-11"

SCHEDULE = {
    "salonId": "salon-1",
    "weeklySchedule": [
        {"day": "Monday", "timeSlots": ["10:00", "11:00"], "totalSeats": 2},
        {"day": "Wednesday", "timeSlots": ["09:00-09:30", "09:30-10:00", "10:00-10:30"], "totalSeats": 3},
    ],
}


class RecordingSender:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    def send(self, phone, code):
        self.sent.append((phone, code))
        return self.ok

    def last_code(self, phone):
        return [code for p, code in self.sent if p == phone][-1]


@pytest.fixture
def otp_sender():
    return RecordingSender()


@pytest.fixture
def app(otp_sender):
    return create_app(
        mongo_client=mongomock.MongoClient(),
        mongo_db="salon_test",
        sql_url="sqlite://",
        otp_sender=otp_sender,
        start_scheduler=False,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store():
    store = create_mongo_store(mongomock.MongoClient(), "salon_test")
    store.ensure_indexes()
    return store


@pytest.fixture
def schedules(store):
    service = ScheduleService(store, "UTC")
    service.add_schedule(WeeklySchedule(**SCHEDULE))
    return service


@pytest.fixture
def manager(store, schedules):
    return BookingManager(store, schedules)
