import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as studio.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "studio.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # All wall-clock math (opening hours, day boundaries) happens here
    BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/London")

    # Candidate start times every N minutes
    SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "15"))

    # Unpaid holds stop blocking checkout after this long
    HOLD_MINUTES = int(os.getenv("HOLD_MINUTES", "20"))

    # `flask sweep-holds` cancels PENDING rows older than this
    STALE_HOLD_MINUTES = int(os.getenv("STALE_HOLD_MINUTES", "1440"))

    # Longest range a single availability request may cover
    MAX_AVAILABILITY_DAYS = int(os.getenv("MAX_AVAILABILITY_DAYS", "62"))

    # Used when an artist has no availability templates at all.
    # weekday: 0=Sun .. 6=Sat, windows in minutes since local midnight
    DEFAULT_OPENING_HOURS = {
        0: [(11 * 60 + 30, 19 * 60 + 30)],
        1: [(9 * 60 + 30, 17 * 60 + 30)],
        2: [(9 * 60 + 30, 17 * 60 + 30)],
        3: [(9 * 60 + 30, 17 * 60 + 30)],
        4: [(9 * 60 + 30, 17 * 60 + 30)],
        5: [(9 * 60 + 30, 17 * 60 + 30)],
        6: [(11 * 60 + 30, 19 * 60 + 30)],
    }

    # Payments (amounts are integer minor units, e.g. pence)
    CURRENCY = os.getenv("CURRENCY", "gbp")
    MIN_CHARGE_MINOR_UNITS = int(os.getenv("MIN_CHARGE_MINOR_UNITS", "50"))
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

    # Public site, used for Stripe success/cancel redirects
    SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")

    # Google Calendar
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
    # Fernet key used to encrypt stored calendar credentials
    CALENDAR_CREDENTIALS_KEY = os.getenv("CALENDAR_CREDENTIALS_KEY")
    STUDIO_LOCATION = os.getenv("STUDIO_LOCATION")

    # Static bearer token for the admin API
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

    # Basic app settings
    DEBUG = False
