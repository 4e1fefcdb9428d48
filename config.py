# config.py
import os

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))


def _database_url():
    url = os.getenv("DATABASE_URL")
    if not url:
        return f"sqlite:///{os.path.join(BASE_DIR, 'campusflow.db')}"
    # Heroku/Render style URLs
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Config:
    # --- Database ---
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Flask-WTF CSRF / Sessions ---
    SECRET_KEY = os.getenv("SECRET_KEY", "dev")  # change in production

    # --- Logging ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # --- Attendance clock ---
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Kolkata")
    DAY_OPEN_GRACE_MINUTES = int(os.getenv("DAY_OPEN_GRACE_MINUTES", "10"))

    # --- Presence feed cache (seconds) ---
    FEED_CACHE_TTL = int(os.getenv("FEED_CACHE_TTL", "5"))

    # --- WhatsApp (Twilio) ---
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER", "")
    TWILIO_WHATSAPP_CONTENT_SID = os.getenv("TWILIO_WHATSAPP_CONTENT_SID", "")
    TWILIO_API_URL = os.getenv("TWILIO_API_URL", "https://api.twilio.com")
    WHATSAPP_TIMEOUT = float(os.getenv("WHATSAPP_TIMEOUT", "10"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "test"
    TWILIO_ACCOUNT_SID = ""
    TWILIO_AUTH_TOKEN = ""
    TWILIO_WHATSAPP_NUMBER = ""
