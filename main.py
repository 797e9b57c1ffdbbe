import logging
import os

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

import config
from availability import ScheduleService, parse_calendar_date
from blogs import BlogService
from bookings import BookingManager
from database import (
    create_mongo_store, create_session_factory, create_sql_engine, create_tables, get_db_sql,
)
from errors import ValidationError, register_error_handlers
from models import WeeklySchedule
from salons import SalonService
from scheduler import iniciar_scheduler
from schemas import (
    BlogCreateSchema, BlogUpdateSchema, BookingCreateSchema, CommentSchema, LocationSchema,
    ProfileSchema, ReviewSchema, SalonLeadSchema, SalonUpdateSchema, ScheduleUpdateSchema,
    SendOtpSchema, VerifyOtpSchema,
)
from users import UserService, user_to_json, wallet_to_json

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def get_schedules(request: Request) -> ScheduleService:
    return request.app.state.schedules


def get_bookings(request: Request) -> BookingManager:
    return request.app.state.bookings


def get_salons(request: Request) -> SalonService:
    return request.app.state.salons


def get_users(request: Request) -> UserService:
    return request.app.state.users


def get_blogs(request: Request) -> BlogService:
    return request.app.state.blogs


def create_app(mongo_client=None, mongo_db=None, sql_url=None, otp_sender=None,
               start_scheduler=None, timezone=None, grace_minutes=None):
    app = FastAPI(title="API Salon Booking", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Recursos explícitos por app: nada de colecciones globales
    store = create_mongo_store(mongo_client, mongo_db)
    engine = create_sql_engine(sql_url)
    app.state.mongo = store
    app.state.sql_engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.schedules = ScheduleService(store, timezone or config.SALON_TIMEZONE)
    app.state.bookings = BookingManager(store, app.state.schedules)
    app.state.salons = SalonService(store)
    app.state.users = UserService(sender=otp_sender)
    app.state.blogs = BlogService(store)
    app.state.scheduler = None

    run_scheduler = config.START_SCHEDULER if start_scheduler is None else start_scheduler

    @app.on_event("startup")
    def startup_event():
        create_tables(engine)
        store.ensure_indexes()
        if run_scheduler:
            app.state.scheduler = iniciar_scheduler(
                app.state.bookings, store, app.state.session_factory, grace_minutes
            )

    @app.on_event("shutdown")
    def shutdown_event():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)
        store.close()
        engine.dispose()

    register_routes(app)
    return app


def register_routes(app: FastAPI):
    @app.get("/")
    def root():
        return {"message": "Salon booking API running"}

    # ==========================================
    # HORARIOS Y DISPONIBILIDAD
    # ==========================================
    @app.post("/schedule", status_code=201)
    def add_schedule(schedule: WeeklySchedule, schedules: ScheduleService = Depends(get_schedules)):
        doc = schedules.add_schedule(schedule)
        doc.pop("_id", None)
        return {"message": "Schedule added successfully", "schedule": doc}

    @app.get("/schedule/available-slots")
    def available_slots(
        salonId: str = Query(None),
        date: str = Query(None),
        schedules: ScheduleService = Depends(get_schedules),
    ):
        if not salonId or not date:
            raise ValidationError("Salon ID and Date are required", reason="missing-fields")
        day = parse_calendar_date(date, schedules.tz)
        return {"date": date, "availableSlots": schedules.compute_availability(salonId, day)}

    @app.get("/schedule/{salon_id}")
    def get_schedule(salon_id: str, schedules: ScheduleService = Depends(get_schedules)):
        return {"schedule": schedules.get_schedule(salon_id).model_dump()}

    @app.put("/schedule/{salon_id}")
    def replace_schedule(
        salon_id: str,
        data: ScheduleUpdateSchema,
        schedules: ScheduleService = Depends(get_schedules),
    ):
        doc = schedules.replace_schedule(salon_id, data.weeklySchedule)
        doc.pop("_id", None)
        return {"message": "Schedule updated successfully", "schedule": doc}

    # ==========================================
    # RESERVAS
    # ==========================================
    @app.post("/booking/create", status_code=201)
    def create_booking(data: BookingCreateSchema, bookings: BookingManager = Depends(get_bookings)):
        return bookings.create(
            data.userId, data.salonId, data.date, data.timeSlot, data.seatNumber, data.service
        )

    @app.get("/booking/user/{user_id}")
    def user_bookings(user_id: str, bookings: BookingManager = Depends(get_bookings)):
        return bookings.list_for_user(user_id)

    @app.get("/booking/salon/{salon_id}")
    def salon_bookings(salon_id: str, bookings: BookingManager = Depends(get_bookings)):
        return bookings.list_for_salon(salon_id)

    @app.post("/booking/confirm/{booking_id}")
    def confirm_booking(booking_id: str, bookings: BookingManager = Depends(get_bookings)):
        return bookings.confirm(booking_id)

    @app.post("/booking/cancel-unpaid/{booking_id}")
    def cancel_unpaid_booking(booking_id: str, bookings: BookingManager = Depends(get_bookings)):
        return bookings.cancel_unpaid(booking_id)

    @app.post("/booking/cancel/{booking_id}")
    def cancel_booking(booking_id: str, bookings: BookingManager = Depends(get_bookings)):
        return bookings.cancel(booking_id)

    @app.post("/booking/complete/{booking_id}")
    def complete_booking(booking_id: str, bookings: BookingManager = Depends(get_bookings)):
        return bookings.complete(booking_id)

    # ==========================================
    # SALONES
    # ==========================================
    @app.post("/salon/lead", status_code=201)
    def salon_lead(lead: SalonLeadSchema, salons: SalonService = Depends(get_salons)):
        salon = salons.register_lead(lead)
        return {
            "message": "Salon registered successfully. Status remains 'pending' until approved by admin.",
            "salon": salon,
        }

    @app.get("/salon")
    def list_salons(status: str = Query(None), salons: SalonService = Depends(get_salons)):
        found = salons.list_salons(status)
        return {"count": len(found), "salons": found}

    @app.get("/salon/nearby")
    def nearby_salons(latitude: float = Query(...), longitude: float = Query(...),
                      salons: SalonService = Depends(get_salons)):
        found = salons.nearby_salons(latitude, longitude)
        return {"count": len(found), "salons": found}

    @app.get("/salon/top-reviewed")
    def top_reviewed(salons: SalonService = Depends(get_salons)):
        found = salons.top_reviewed()
        return {"count": len(found), "salons": found}

    @app.get("/salon/{salon_id}")
    def get_salon(salon_id: str, salons: SalonService = Depends(get_salons)):
        return {"salon": salons.get_salon(salon_id)}

    @app.put("/salon/{salon_id}")
    def update_salon(salon_id: str, data: SalonUpdateSchema, salons: SalonService = Depends(get_salons)):
        return {"message": "Salon updated successfully", "salon": salons.update_salon(salon_id, data)}

    @app.post("/salon/{salon_id}/approve")
    def approve_salon(salon_id: str, salons: SalonService = Depends(get_salons)):
        return {"message": "Salon approved successfully and is now live.", "salon": salons.approve_salon(salon_id)}

    @app.post("/salon/{salon_id}/reviews", status_code=201)
    def add_review(salon_id: str, review: ReviewSchema,
                   salons: SalonService = Depends(get_salons), db_sql: Session = Depends(get_db_sql)):
        return {"message": "Review added successfully.", "salon": salons.add_review(salon_id, review, db_sql)}

    # ==========================================
    # USUARIOS (SQL)
    # ==========================================
    @app.post("/user/send-otp")
    def send_otp(data: SendOtpSchema, users: UserService = Depends(get_users),
                 db_sql: Session = Depends(get_db_sql)):
        users.send_otp(db_sql, data.mobileNumber)
        return {"message": "OTP sent successfully"}

    @app.post("/user/verify-otp")
    def verify_otp(data: VerifyOtpSchema, users: UserService = Depends(get_users),
                   db_sql: Session = Depends(get_db_sql)):
        user = users.verify_otp(db_sql, data.mobileNumber, data.otp, data.referralCode)
        return {
            "message": "OTP verified successfully",
            "user": user_to_json(user),
            "wallet": wallet_to_json(user.wallet),
        }

    @app.post("/user/update-location")
    def update_location(data: LocationSchema, users: UserService = Depends(get_users),
                        db_sql: Session = Depends(get_db_sql)):
        user = users.update_location(db_sql, data.mobileNumber, data.latitude, data.longitude)
        return {"message": "Location updated successfully", "location": user_to_json(user)["location"]}

    @app.put("/user/update-profile/{user_id}")
    def update_profile(user_id: int, data: ProfileSchema, users: UserService = Depends(get_users),
                       db_sql: Session = Depends(get_db_sql)):
        user = users.update_profile(db_sql, user_id, data)
        return {"message": "Profile updated successfully", "user": user_to_json(user)}

    @app.get("/user/get-all")
    def list_users(users: UserService = Depends(get_users), db_sql: Session = Depends(get_db_sql)):
        return [dict(user_to_json(u), wallet=wallet_to_json(u.wallet)) for u in users.list_users(db_sql)]

    @app.get("/user/get/{user_id}")
    def get_user(user_id: int, users: UserService = Depends(get_users), db_sql: Session = Depends(get_db_sql)):
        user = users.get_user(db_sql, user_id)
        return dict(user_to_json(user), wallet=wallet_to_json(user.wallet))

    @app.get("/user/referral/{user_id}")
    def referral_code(user_id: int, users: UserService = Depends(get_users),
                      db_sql: Session = Depends(get_db_sql)):
        return {"referralCode": users.get_user(db_sql, user_id).referral_code}

    @app.get("/user/user-reviews/{user_id}")
    def user_reviews(user_id: int, users: UserService = Depends(get_users),
                     salons: SalonService = Depends(get_salons), db_sql: Session = Depends(get_db_sql)):
        users.get_user(db_sql, user_id)
        reviews = salons.user_reviews(user_id)
        return {"count": len(reviews), "reviews": reviews}

    # ==========================================
    # BLOGS
    # ==========================================
    @app.post("/blog", status_code=201)
    def create_blog(data: BlogCreateSchema, blogs: BlogService = Depends(get_blogs)):
        return {"message": "Blog created successfully", "blog": blogs.create_blog(data)}

    @app.get("/blog")
    def list_blogs(blogs: BlogService = Depends(get_blogs)):
        return blogs.list_blogs()

    @app.get("/blog/category/{category}")
    def blogs_by_category(category: str, blogs: BlogService = Depends(get_blogs)):
        return blogs.list_by_category(category)

    @app.get("/blog/{blog_id}")
    def get_blog(blog_id: str, blogs: BlogService = Depends(get_blogs)):
        return blogs.get_blog(blog_id)

    @app.put("/blog/{blog_id}")
    def update_blog(blog_id: str, data: BlogUpdateSchema, blogs: BlogService = Depends(get_blogs)):
        return {"message": "Blog updated successfully", "blog": blogs.update_blog(blog_id, data)}

    @app.delete("/blog/{blog_id}")
    def delete_blog(blog_id: str, blogs: BlogService = Depends(get_blogs)):
        blogs.delete_blog(blog_id)
        return {"message": "Blog deleted successfully"}

    @app.post("/blog/{blog_id}/comments", status_code=201)
    def post_comment(blog_id: str, data: CommentSchema, blogs: BlogService = Depends(get_blogs)):
        return {"message": "Comment posted successfully", "comment": blogs.post_comment(blog_id, data)}

    @app.get("/blog/{blog_id}/comments")
    def blog_comments(blog_id: str, blogs: BlogService = Depends(get_blogs)):
        return blogs.list_comments(blog_id)


app = create_app()

if __name__ == "__main__":
    import uvicorn
    PORT = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=PORT)
