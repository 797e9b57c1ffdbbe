import os

# ==========================================
# 1. MONGODB (salones, horarios, reservas)
# ==========================================
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017/salon")
MONGO_DB = os.getenv("MONGO_DB", "salon")

# ==========================================
# 2. SQL (usuarios, billeteras, OTP)
# ==========================================
DB_USER = os.environ.get("MYSQLUSER", "root")
DB_PASS = os.environ.get("MYSQLPASSWORD", "")
DB_HOST = os.environ.get("MYSQLHOST", "localhost")
DB_NAME = os.environ.get("MYSQLDATABASE", "salon")
DB_PORT = os.environ.get("MYSQLPORT", "3306")

SQL_DATABASE_URL = os.getenv(
    "SQL_DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# ==========================================
# 3. AGENDA Y RESERVAS
# ==========================================
# Zona usada para convertir fechas con hora en un día calendario
SALON_TIMEZONE = os.getenv("SALON_TIMEZONE", "UTC")
UNPAID_GRACE_MINUTES = int(os.getenv("UNPAID_GRACE_MINUTES", 10))
UNPAID_SWEEP_SECONDS = int(os.getenv("UNPAID_SWEEP_SECONDS", 60))
REMINDER_SWEEP_MINUTES = int(os.getenv("REMINDER_SWEEP_MINUTES", 60))
START_SCHEDULER = os.getenv("START_SCHEDULER", "1") not in ("0", "false", "False")

# ==========================================
# 4. USUARIOS
# ==========================================
OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", 300))
SIGNUP_BONUS = float(os.getenv("SIGNUP_BONUS", 100))
REFERRAL_BONUS = float(os.getenv("REFERRAL_BONUS", 50))

# ==========================================
# 5. HTTP / LOGS
# ==========================================
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ==========================================
# 6. CORREO (recordatorios)
# ==========================================
MAIL_USERNAME = os.getenv("MAIL_USERNAME")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
MAIL_FROM = os.getenv("MAIL_FROM") or MAIL_USERNAME
