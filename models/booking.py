from datetime import datetime

from sqlalchemy import DDL, event

from models.db import db

BOOKING_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "REFUNDED")
# Statuses that occupy the artist's time
BLOCKING_STATUSES = ("PENDING", "CONFIRMED")

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    artist_id = db.Column(db.Integer, db.ForeignKey("artists.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    # naive UTC, half-open [start_at, end_at)
    start_at = db.Column(db.DateTime, nullable=False, index=True)
    end_at = db.Column(db.DateTime, nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default="PENDING")
    # status values: PENDING, CONFIRMED, CANCELLED, REFUNDED

    price = db.Column(db.Integer, nullable=False)       # effective price, minor units
    amount_due = db.Column(db.Integer, nullable=False)  # what checkout charges (deposit or price)
    currency = db.Column(db.String(10), nullable=False, default="gbp")

    customer_name = db.Column(db.String(120), nullable=True)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=True)

    # customer brief
    placement = db.Column(db.String(160), nullable=True)
    design_brief = db.Column(db.Text, nullable=True)
    reference_image_urls = db.Column(db.JSON, nullable=False, default=list)

    stripe_session_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True)

    external_event_id = db.Column(db.String(255), nullable=True)
    calendar_synced_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(120), nullable=True)

    artist = db.relationship("Artist")
    service = db.relationship("Service")

    __table_args__ = (
        db.CheckConstraint("start_at < end_at", name="ck_booking_interval"),
        db.Index("ix_booking_artist_window", "artist_id", "start_at", "end_at"),
    )

    @property
    def calendar_marker(self) -> str:
        return f"BOOKING:{self.id}"


# Storage-level guard for the "no overlapping CONFIRMED bookings" rule.
# Only PostgreSQL supports exclusion constraints; elsewhere the
# application-level checks in scheduling.admission are the only guard.
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "ALTER TABLE bookings ADD CONSTRAINT ex_booking_confirmed_overlap "
        "EXCLUDE USING gist (artist_id WITH =, tsrange(start_at, end_at) WITH &&) "
        "WHERE (status = 'CONFIRMED')"
    ).execute_if(dialect="postgresql"),
)
