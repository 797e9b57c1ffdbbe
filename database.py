import logging
from datetime import datetime, timezone

from fastapi import Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from sqlalchemy import (
    Column, DateTime, Float, ForeignKey, Integer, String, create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

import config

logger = logging.getLogger(__name__)


# ==========================================
# 1. MONGODB (Salones + Horarios + Reservas + Blogs)
# ==========================================
class MongoStore:
    """
    Agrupa las colecciones Mongo del servicio.
    Se crea una vez al arrancar la app y se inyecta en cada componente.
    """

    def __init__(self, client, db_name):
        self.client = client
        self.db = client[db_name]
        self.salons = self.db["salons"]
        self.schedules = self.db["schedules"]
        self.bookings = self.db["bookings"]
        # Un documento por asiento ocupado; su _id es la clave compuesta
        self.seat_claims = self.db["seat_claims"]
        self.blogs = self.db["blogs"]
        self.comments = self.db["comments"]

    def ensure_indexes(self):
        self.schedules.create_index([("salonId", ASCENDING)], unique=True)
        self.salons.create_index([("mobile", ASCENDING)], unique=True)
        self.bookings.create_index([("salonId", ASCENDING), ("date", ASCENDING)])
        self.bookings.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
        self.bookings.create_index([("status", ASCENDING), ("createdAt", ASCENDING)])
        self.blogs.create_index([("category", ASCENDING), ("createdAt", DESCENDING)])
        self.comments.create_index([("blogId", ASCENDING), ("createdAt", DESCENDING)])

    def close(self):
        self.client.close()


def create_mongo_store(client=None, db_name=None):
    if client is None:
        client = MongoClient(config.MONGO_URL)
    store = MongoStore(client, db_name or config.MONGO_DB)
    logger.info("✅ Cliente MongoDB configurado")
    return store


# ==========================================
# 2. SQL (Usuarios + Billeteras + OTP)
# ==========================================
Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserSQL(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    email = Column(String(100), unique=True, index=True, nullable=True)
    gender = Column(String(20), nullable=True)
    role = Column(String(20), default="user", nullable=False)
    referral_code = Column(String(20), unique=True, index=True)
    referred_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    wallet = relationship("WalletSQL", back_populates="user", uselist=False)


class WalletSQL(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    balance = Column(Float, default=0, nullable=False)
    # Saldo de referidos: solo se usa para reservas, no se retira
    non_withdrawable_balance = Column(Float, default=0, nullable=False)

    user = relationship("UserSQL", back_populates="wallet")


class OtpSQL(Base):
    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(20), index=True, nullable=False)
    code = Column(String(10), nullable=False)
    expires_at = Column(DateTime, nullable=False)


def create_sql_engine(url=None):
    url = url or config.SQL_DATABASE_URL
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # SQLite en memoria: una sola conexión compartida entre hilos
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
    else:
        # pool_pre_ping ayuda a reconectar si la conexión se cierra
        engine = create_engine(url, pool_pre_ping=True)
    logger.info(f"✅ Motor SQL configurado ({engine.url.get_backend_name()})")
    return engine


def create_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.warning(f"⚠️ No se pudieron crear las tablas SQL: {e}")


# ==========================================
# 3. DEPENDENCIAS FASTAPI
# ==========================================
def get_db_sql(request: Request):
    db_sql = request.app.state.session_factory()
    try:
        yield db_sql
    finally:
        db_sql.close()
