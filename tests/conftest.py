import os
import sys
from datetime import date, datetime

import pytest
from cryptography.fernet import Fernet

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.artist import Artist  # noqa: E402
from models.availability import AvailabilityTemplate  # noqa: E402
from models.booking import Booking  # noqa: E402
from models.service import Service, ServiceOnArtist  # noqa: E402
from utils import google_calendar, payments  # noqa: E402

ADMIN_TOKEN = "test-admin-token"

# Tuesday, and London is on GMT in January so local time == UTC
TUESDAY = date(2030, 1, 8)


class StudioTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "WARNING"
    ADMIN_API_TOKEN = ADMIN_TOKEN
    CALENDAR_CREDENTIALS_KEY = Fernet.generate_key().decode()
    GOOGLE_CLIENT_ID = "client-id"
    GOOGLE_CLIENT_SECRET = "client-secret"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_dummy"
    SITE_URL = "https://studio.test"


@pytest.fixture
def app():
    app = create_app(StudioTestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def studio(app):
    """One artist offering one 60-minute service, open Tuesdays 09:30-17:30."""
    artist = Artist(slug="mara", name="Mara Quinn")
    service = Service(slug="small-flash", title="Small flash", duration_min=60, price=8000, deposit=2000)
    db.session.add_all([artist, service])
    db.session.flush()
    link = ServiceOnArtist(artist_id=artist.id, service_id=service.id)
    template = AvailabilityTemplate(artist_id=artist.id, weekday=2, start_min=9 * 60 + 30, end_min=17 * 60 + 30)
    db.session.add_all([link, template])
    db.session.commit()
    return {"artist": artist, "service": service, "link": link}


def make_booking(studio, start, end, status="PENDING", created_at=None, **extra):
    booking = Booking(
        artist_id=studio["artist"].id,
        service_id=studio["service"].id,
        start_at=start,
        end_at=end,
        status=status,
        price=8000,
        amount_due=2000,
        currency="gbp",
        customer_email=extra.pop("customer_email", "client@example.com"),
        created_at=created_at or datetime.utcnow(),
        **extra,
    )
    db.session.add(booking)
    db.session.commit()
    return booking


class StripeStub:
    def __init__(self):
        self.sessions = {}
        self.expired = []
        self.refunds = []
        self.fail_create = False

    def create_checkout_session(self, booking, artist_name, service_title, when_label):
        if self.fail_create:
            raise payments.PaymentError("stripe down")
        session_id = f"cs_test_{booking.id}"
        self.sessions[session_id] = {
            "id": session_id,
            "payment_status": "unpaid",
            "payment_intent": None,
            "booking_id": str(booking.id),
        }
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def pay(self, session_id, payment_intent="pi_test_1"):
        self.sessions[session_id].update(payment_status="paid", payment_intent=payment_intent)

    def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise payments.PaymentError("No such checkout.session")
        return dict(self.sessions[session_id])

    def expire_session(self, session_id):
        self.expired.append(session_id)

    def refund(self, payment_intent_id):
        self.refunds.append(payment_intent_id)
        return f"re_{len(self.refunds)}"


@pytest.fixture
def stripe_stub(monkeypatch):
    stub = StripeStub()
    monkeypatch.setattr(payments, "create_checkout_session", stub.create_checkout_session)
    monkeypatch.setattr(payments, "retrieve_session", stub.retrieve_session)
    monkeypatch.setattr(payments, "expire_session", stub.expire_session)
    monkeypatch.setattr(payments, "refund", stub.refund)
    return stub


class FakeCalendar:
    def __init__(self):
        self.busy = []
        self.events = {}
        self.upserts = []
        self.fail = False
        self.closed = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed += 1

    def free_busy(self, time_min, time_max):
        if self.fail:
            raise google_calendar.CalendarError("calendar unavailable")
        return [(s, e) for s, e in self.busy if s < time_max and e > time_min]

    def upsert_event(self, *, marker, start, end, summary, description, location=None,
                     attendees=None, existing_event_id=None):
        if self.fail:
            raise google_calendar.CalendarError("calendar unavailable")
        self.upserts.append(marker)
        event_id = existing_event_id or self.events.get(marker) or f"evt_{len(self.events) + 1}"
        self.events[marker] = event_id
        return event_id


@pytest.fixture
def calendar(monkeypatch):
    fake = FakeCalendar()
    monkeypatch.setattr(google_calendar, "calendar_for_artist", lambda artist: fake)
    return fake
