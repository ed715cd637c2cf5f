# lensmanager/core/config.py

import os
from dotenv import load_dotenv

load_dotenv()

# =====================================================
# APPLICATION
# =====================================================
APP_ENV = os.getenv("APP_ENV")
if APP_ENV not in {"development", "staging", "production"}:
    raise ValueError("APP_ENV must be development | staging | production")

IS_PRODUCTION = APP_ENV == "production"

APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8000").rstrip("/")

# =====================================================
# DATABASE
# =====================================================
DB_TYPE = os.getenv("DB_TYPE")
if DB_TYPE not in {"postgres", "sqlite"}:
    raise ValueError("DB_TYPE must be postgres | sqlite")

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres")

elif DB_TYPE == "sqlite":
    if IS_PRODUCTION:
        raise ValueError("SQLite is NOT allowed in production")
    SQLITE_PATH = os.getenv("SQLITE_PATH", "./lensmanager.db")
    DATABASE_URL = f"sqlite+aiosqlite:///{SQLITE_PATH}"

# ---- Pool tuning (safe defaults) ----
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 20))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))
DB_ECHO_POOL = os.getenv("DB_ECHO_POOL", "false").lower() == "true"

# ---- SSL ----
DB_SSL_VERIFY = os.getenv("DB_SSL_VERIFY", "true").lower() == "true"

# =====================================================
# JWT / AUTH
# =====================================================
JWT_ACCESS_SECRET_KEY = os.getenv("JWT_ACCESS_SECRET_KEY")
if not JWT_ACCESS_SECRET_KEY:
    raise ValueError("JWT_ACCESS_SECRET_KEY must be set")

JWT_ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
)

# =====================================================
# BILLING
# =====================================================
INVOICE_DUE_DAYS = int(os.getenv("INVOICE_DUE_DAYS", 30))
FINAL_PAYMENT_DUE_DAYS = int(os.getenv("FINAL_PAYMENT_DUE_DAYS", 30))

# =====================================================
# BOOKING CONFIRMATION
# =====================================================
BOOKING_CONFIRMATION_TTL_HOURS = int(
    os.getenv("BOOKING_CONFIRMATION_TTL_HOURS", 48)
)

# =====================================================
# EMAIL
# =====================================================
# Emails are rendered and written to this log file, never handed to an MTA.
EMAIL_LOG_FILE = os.getenv("EMAIL_LOG_FILE", "./logs/email.log")
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@lensmanager.local")

# =====================================================
# SCHEDULER / CORS
# =====================================================
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "false").lower() == "true"
CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
]
