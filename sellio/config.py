import os
from datetime import timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sellio.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Cloudflare R2 Configuration (slip + refund slip images)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "sellio-payments")
# Public bucket domain used to build durable slip URLs
R2_PUBLIC_BASE_URL = os.getenv("R2_PUBLIC_BASE_URL", "")

# Frontend base URL for links inside emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Sellio <noreply@sellio.app>")

# Slip2GO slip verification
SLIP2GO_API_URL = os.getenv("SLIP2GO_API_URL", "https://connect.slip2go.com")
SLIP2GO_SECRET_KEY = os.getenv("SLIP2GO_SECRET_KEY", "")
SLIP2GO_TIMEOUT_SECONDS = float(os.getenv("SLIP2GO_TIMEOUT_SECONDS", "15"))
SLIP_AUTO_VERIFY = os.getenv("SLIP_AUTO_VERIFY", "true").lower() == "true"

# Shared secret for request-triggered jobs (booking reminders)
CRON_SECRET = os.getenv("CRON_SECRET")

# Creators operate on Thailand time; all advance-notice math uses this offset
CREATOR_UTC_OFFSET_HOURS = int(os.getenv("CREATOR_UTC_OFFSET_HOURS", "7"))
CREATOR_TZ = timezone(timedelta(hours=CREATOR_UTC_OFFSET_HOURS))

# Booking rules
SLOT_INSERT_CHUNK_SIZE = int(os.getenv("SLOT_INSERT_CHUNK_SIZE", "500"))
MAX_RECURRING_WEEKS = 12
MAX_RESCHEDULES = int(os.getenv("MAX_RESCHEDULES", "1"))
DEFAULT_DURATION_MINUTES = 60

# Orders not paid within this window expire
ORDER_PAYMENT_WINDOW_HOURS = int(os.getenv("ORDER_PAYMENT_WINDOW_HOURS", "24"))

# Digital delivery
DEFAULT_MAX_DOWNLOADS = int(os.getenv("DEFAULT_MAX_DOWNLOADS", "5"))
DOWNLOAD_ACCESS_DAYS = int(os.getenv("DOWNLOAD_ACCESS_DAYS", "30"))

# Slip uploads
MAX_SLIP_SIZE_BYTES = int(os.getenv("MAX_SLIP_SIZE_BYTES", str(5 * 1024 * 1024)))
ALLOWED_SLIP_TYPES = ["image/jpeg", "image/png", "image/webp"]

# Reminder window for upcoming bookings (hours ahead)
REMINDER_MIN_HOURS_AHEAD = 12
REMINDER_MAX_HOURS_AHEAD = 36

# Rate limiting for public checkout endpoints (Redis backed)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
