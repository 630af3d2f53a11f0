from datetime import datetime, timedelta

from models import db
from models.booking import Booking
from scheduling import admission

from conftest import make_booking


def checkout_body(studio, start="2030-01-08T11:00:00Z", **extra):
    body = {
        "artistId": studio["artist"].id,
        "serviceId": studio["service"].id,
        "startISO": start,
        "customerEmail": "client@example.com",
        "customerName": "Sam Client",
        "placement": "forearm",
        "brief": "fine-line swallow",
        "referenceImageUrls": ["https://img.test/1.png"],
    }
    body.update(extra)
    return body


def test_checkout_creates_pending_hold(client, studio, stripe_stub):
    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["url"].startswith("https://checkout.stripe.test/")
    assert body["amountDue"] == 2000

    booking = db.session.get(Booking, body["bookingId"])
    assert booking.status == "PENDING"
    assert booking.end_at == datetime(2030, 1, 8, 12, 0)
    assert booking.stripe_session_id == f"cs_test_{booking.id}"
    assert booking.reference_image_urls == ["https://img.test/1.png"]


def test_fresh_hold_blocks_checkout(client, studio, stripe_stub):
    make_booking(studio, datetime(2030, 1, 8, 11, 30), datetime(2030, 1, 8, 12, 30),
                 created_at=datetime.utcnow() - timedelta(minutes=5))

    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "slot_taken"


def test_stale_hold_does_not_block_checkout(client, studio, stripe_stub):
    make_booking(studio, datetime(2030, 1, 8, 11, 30), datetime(2030, 1, 8, 12, 30),
                 created_at=datetime.utcnow() - timedelta(minutes=21))

    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 201


def test_confirmed_booking_blocks_checkout(client, studio, stripe_stub):
    make_booking(studio, datetime(2030, 1, 8, 10, 30), datetime(2030, 1, 8, 11, 30), status="CONFIRMED",
                 created_at=datetime.utcnow() - timedelta(days=3))

    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 409


def test_adjacent_booking_does_not_block(client, studio, stripe_stub):
    make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11), status="CONFIRMED")

    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 201


def test_checkout_validation(client, studio, stripe_stub):
    assert client.post("/bookings/checkout", json={}).status_code == 400
    assert client.post("/bookings/checkout", json=checkout_body(studio, start="not-a-date")).status_code == 400
    assert client.post("/bookings/checkout", json=checkout_body(studio, start="2001-01-01T10:00:00Z")).status_code == 400
    assert client.post("/bookings/checkout", json=checkout_body(studio, customerEmail="nope")).status_code == 400
    assert client.post("/bookings/checkout", json=checkout_body(studio, serviceId=999)).status_code == 404


def test_invalid_price_is_rejected(client, studio, stripe_stub):
    studio["service"].deposit = None
    studio["link"].price_override = 0
    db.session.commit()

    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_price"


def test_payment_provider_failure_drops_the_hold(client, studio, stripe_stub):
    stripe_stub.fail_create = True

    resp = client.post("/bookings/checkout", json=checkout_body(studio))
    assert resp.status_code == 502
    assert Booking.query.count() == 0


def test_release_deletes_unpaid_hold(client, studio, stripe_stub):
    booking_id = client.post("/bookings/checkout", json=checkout_body(studio)).get_json()["bookingId"]

    resp = client.post("/bookings/release", json={"session_id": f"cs_test_{booking_id}"})
    assert resp.status_code == 200
    assert resp.get_json()["outcome"] == "deleted"
    assert stripe_stub.expired == [f"cs_test_{booking_id}"]
    assert db.session.get(Booking, booking_id) is None


def test_release_by_id_requires_matching_email(client, studio, stripe_stub):
    booking_id = client.post("/bookings/checkout", json=checkout_body(studio)).get_json()["bookingId"]

    resp = client.post("/bookings/release", json={"bookingId": booking_id, "customerEmail": "other@example.com"})
    assert resp.status_code == 404

    resp = client.post("/bookings/release", json={"bookingId": booking_id, "customerEmail": "Client@Example.com"})
    assert resp.status_code == 200


def test_sweep_cancels_old_holds(app, studio):
    now = datetime(2030, 1, 1, 12, 0)
    old = make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11), created_at=now - timedelta(days=2))
    fresh = make_booking(studio, datetime(2030, 1, 8, 14), datetime(2030, 1, 8, 15), created_at=now - timedelta(hours=1))

    assert admission.sweep_stale_holds(now=now) == 1
    assert old.status == "CANCELLED"
    assert old.cancel_reason == "hold_expired"
    assert fresh.status == "PENDING"


def test_sweep_holds_command(app, studio):
    make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11),
                 created_at=datetime.utcnow() - timedelta(days=2))

    result = app.test_cli_runner().invoke(args=["sweep-holds"])
    assert result.exit_code == 0
    assert "1 stale hold(s) cancelled" in result.output


def test_sweep_leaves_holds_with_a_payment_in_flight(app, studio):
    now = datetime(2030, 1, 1, 12, 0)
    paying = make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11),
                          created_at=now - timedelta(days=2), stripe_payment_intent_id="pi_async")

    assert admission.sweep_stale_holds(now=now) == 0
    assert paying.status == "PENDING"
