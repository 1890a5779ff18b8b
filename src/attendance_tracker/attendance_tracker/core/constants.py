"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION_HOURS = 2

STANDARD_WORKDAY_MINUTES = 8 * 60

PASSWORD_MIN_LENGTH = 6
PASSWORD_RESET_TTL_MINUTES = 10

INVITE_CODE_LENGTH = 8
INVITE_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
INVITE_CODE_MAX_RETRIES = 5

MAX_FACE_ENROLLMENT_ATTEMPTS = 3

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200
NOTE_MAX_LENGTH = 500

DEFAULT_MAX_USERS = 10
DEFAULT_LATE_THRESHOLD_MINUTES = 15
DEFAULT_TIMEZONE = "Asia/Kolkata"

OTP_TTL_SECONDS = 10 * 60
OTP_RESEND_COOLDOWN_SECONDS = 2 * 60
OTP_MAX_ATTEMPTS = 3
