import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "shule_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Applies database/schema.sql on startup (CREATE TABLE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Also loads database/seed.sql and the demo accounts
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
MAX_CONTENT_UPLOAD_MB = int(os.getenv("MAX_CONTENT_UPLOAD_MB", "100"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "TZS")

HOSTEL_STATS_FRESH_SECONDS = int(os.getenv("HOSTEL_STATS_FRESH_SECONDS", "300"))
HOSTEL_STATS_STALE_SECONDS = int(os.getenv("HOSTEL_STATS_STALE_SECONDS", "600"))
