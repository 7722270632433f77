import os
from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://127.0.0.1:27017")
DB_NAME = os.getenv("DB_NAME", "wellness_db")

JWT_SECRET = (os.getenv("JWT_SECRET") or "dev-only-change-me").strip()
JWT_ALGORITHM = (os.getenv("JWT_ALGORITHM", "HS256") or "HS256").strip()
ACCESS_MINUTES = int(os.getenv("JWT_ACCESS_MINUTES", "60"))

LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()

# Required by POST /challenges/settle; the sweep is refused while unset.
INTERNAL_TOKEN = (os.getenv("INTERNAL_TOKEN", "") or "").strip()

GOOGLE_CLIENT_ID = (os.getenv("GOOGLE_CLIENT_ID", "") or "").strip()
GOOGLE_CLIENT_SECRET = (os.getenv("GOOGLE_CLIENT_SECRET", "") or "").strip()
GOOGLE_FIT_TIMEOUT = float(os.getenv("GOOGLE_FIT_TIMEOUT", "12"))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "static/uploads/photos")

POINTS_PER_LEVEL = int(os.getenv("POINTS_PER_LEVEL", "500"))
MONTHLY_TARGET_POINTS = int(os.getenv("MONTHLY_TARGET_POINTS", "1000"))
WEEKLY_YOGA_TARGET = int(os.getenv("WEEKLY_YOGA_TARGET", "2"))
YOGA_WARNING_POINTS = int(os.getenv("YOGA_WARNING_POINTS", "300"))

EXPIRY_PENALTY_RATE = float(os.getenv("EXPIRY_PENALTY_RATE", "0.10"))
EXPIRY_GRACE_DAYS = int(os.getenv("EXPIRY_GRACE_DAYS", "3"))

# Upper bound on a single logged value (steps, minutes, glasses, ...)
MAX_ACTIVITY_VALUE = float(os.getenv("MAX_ACTIVITY_VALUE", "1000000"))
