SECRET_KEY = "test-secret"

STORAGE_BACKEND = "memory"

DB_CONFIG = {
    "host": "localhost",
    "port": 3306,
    "user": "root",
    "password": "",
    "database": "attendance_tracker_test",
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = False

TOKEN_TTL_SECONDS = 3600
LOGIN_RATE_LIMIT = 5
LOGIN_RATE_WINDOW_SECONDS = 60

FRONTEND_URL = "http://localhost:3000"
MAILGUN_API_KEY = ""
MAILGUN_DOMAIN = ""
MAILGUN_FROM = "Attendance Tracker <no-reply@localhost>"

UPLOAD_DIR = "uploads"
UPLOAD_BASE_URL = "/uploads"

AADHAAR_VERIFIER = "mock"
AADHAAR_API_URL = ""
AADHAAR_CLIENT_ID = ""
AADHAAR_CLIENT_SECRET = ""

SUPER_ADMIN_EMAIL = "root@example.com"
SUPER_ADMIN_PASSWORD = "rootpass123"
