import os
from pathlib import Path

DATABASE_PATH = Path(
    os.getenv("DATABASE_PATH", Path(__file__).parent / "database" / "food_delivery.db")
)

# Empty URL = use the local sqlite-backed implementation
SESSION_SERVICE_URL = os.getenv("SESSION_SERVICE_URL", "")
USER_SERVICE_URL = os.getenv("USER_SERVICE_URL", "")

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_TOKENINFO_URL = os.getenv(
    "GOOGLE_TOKENINFO_URL", "https://www.googleapis.com/oauth2/v3/tokeninfo"
)
GOOGLE_ID_TOKENINFO_URL = os.getenv(
    "GOOGLE_ID_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo"
)
GOOGLE_USERINFO_URL = os.getenv(
    "GOOGLE_USERINFO_URL", "https://www.googleapis.com/oauth2/v3/userinfo"
)

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASS = os.getenv("EMAIL_PASS", "")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "")
TWILIO_API_URL = os.getenv("TWILIO_API_URL", "https://api.twilio.com/2010-04-01")

# Password reset codes
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "5.0"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
