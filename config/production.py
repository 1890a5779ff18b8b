import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mysql")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_tracker"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

TOKEN_TTL_SECONDS = int(os.getenv("TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))
LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "10"))
LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", str(15 * 60)))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
MAILGUN_API_KEY = os.getenv("MAILGUN_API_KEY", "")
MAILGUN_DOMAIN = os.getenv("MAILGUN_DOMAIN", "")
MAILGUN_FROM = os.getenv("MAILGUN_FROM", "Attendance Tracker <no-reply@localhost>")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
UPLOAD_BASE_URL = os.getenv("UPLOAD_BASE_URL", "/uploads")

AADHAAR_VERIFIER = os.getenv("AADHAAR_VERIFIER", "http")
AADHAAR_API_URL = os.getenv("AADHAAR_API_URL", "")
AADHAAR_CLIENT_ID = os.getenv("AADHAAR_CLIENT_ID", "")
AADHAAR_CLIENT_SECRET = os.getenv("AADHAAR_CLIENT_SECRET", "")

SUPER_ADMIN_EMAIL = os.getenv("SUPER_ADMIN_EMAIL", "")
SUPER_ADMIN_PASSWORD = os.getenv("SUPER_ADMIN_PASSWORD", "")
