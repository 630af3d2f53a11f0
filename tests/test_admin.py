from datetime import datetime

from models import db
from models.artist import Artist
from models.availability import AvailabilityOverride, AvailabilityTemplate
from models.booking import Booking
from utils.crypto import decrypt_credentials

from conftest import TUESDAY, make_booking


def test_admin_requires_token(client, studio):
    url = f"/admin/artists/{studio['artist'].id}/templates"
    assert client.get(url).status_code == 401
    assert client.get(url, headers={"Authorization": "Bearer wrong"}).status_code == 403


def test_template_crud(client, studio, admin_headers):
    artist_id = studio["artist"].id
    url = f"/admin/artists/{artist_id}/templates"

    resp = client.post(url, json={"weekday": 3, "start": "10:00", "end": "18:00"}, headers=admin_headers)
    assert resp.status_code == 201
    created = resp.get_json()
    assert created["startMin"] == 600
    assert created["endMin"] == 1080

    listed = client.get(url, headers=admin_headers).get_json()
    assert [t["weekday"] for t in listed] == [2, 3]

    resp = client.delete(f"{url}/{created['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert AvailabilityTemplate.query.filter_by(artist_id=artist_id).count() == 1


def test_template_validation(client, studio, admin_headers):
    url = f"/admin/artists/{studio['artist'].id}/templates"
    bad_bodies = [
        {"weekday": 7, "startMin": 600, "endMin": 700},
        {"weekday": 1, "startMin": 700, "endMin": 600},
        {"weekday": 1, "startMin": 600, "endMin": 1500},
        {"weekday": 1, "start": "25:00", "end": "26:00"},
        {"weekday": 1},
    ]
    for body in bad_bodies:
        assert client.post(url, json=body, headers=admin_headers).status_code == 400


def test_override_crud(client, studio, admin_headers):
    url = f"/admin/artists/{studio['artist'].id}/overrides"

    resp = client.post(url, json={"date": "2030-01-08", "type": "closed", "note": "guest spot"}, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.get_json()["type"] == "CLOSED"
    assert resp.get_json()["startMin"] is None

    resp = client.post(url, json={"date": "2030-01-09", "type": "OPEN"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.post(url, json={"date": "2030-01-09", "type": "SHIFT", "startMin": 600, "endMin": 700},
                       headers=admin_headers)
    assert resp.status_code == 400

    listed = client.get(url, query_string={"from": "2030-01-01", "to": "2030-01-31"}, headers=admin_headers)
    assert len(listed.get_json()) == 1

    override_id = listed.get_json()[0]["id"]
    assert client.delete(f"{url}/{override_id}", headers=admin_headers).status_code == 200
    assert AvailabilityOverride.query.count() == 0


def test_link_service_with_price_override(client, studio, admin_headers):
    url = f"/admin/artists/{studio['artist'].id}/services/{studio['service'].id}"
    resp = client.put(url, json={"priceOverride": 12000}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["price"] == 12000

    resp = client.put(url, json={"priceOverride": -1}, headers=admin_headers)
    assert resp.status_code == 400


def test_calendar_link_is_encrypted(client, studio, admin_headers):
    artist_id = studio["artist"].id
    url = f"/admin/artists/{artist_id}/calendar"

    resp = client.put(url, json={"calendarId": "mara@studio.test", "refreshToken": "1//refresh"},
                      headers=admin_headers)
    assert resp.status_code == 200

    artist = db.session.get(Artist, artist_id)
    assert artist.has_calendar
    assert "1//refresh" not in artist.calendar_credentials
    assert decrypt_credentials(artist.calendar_credentials)["refresh_token"] == "1//refresh"

    assert client.delete(url, headers=admin_headers).status_code == 200
    assert not db.session.get(Artist, artist_id).has_calendar


def test_day_preview(client, studio, admin_headers):
    make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11), status="CONFIRMED")

    resp = client.get(f"/admin/artists/{studio['artist'].id}/day",
                      query_string={"date": TUESDAY.isoformat()}, headers=admin_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["date"] == "2030-01-08"
    assert body["busy"] == [{"start": "2030-01-08T10:00:00+00:00", "end": "2030-01-08T11:00:00+00:00"}]
    assert body["free"] == [
        {"start": "2030-01-08T09:30:00+00:00", "end": "2030-01-08T10:00:00+00:00"},
        {"start": "2030-01-08T11:00:00+00:00", "end": "2030-01-08T17:30:00+00:00"},
    ]
    assert len(body["slots"]["small-flash"]) == 23


def test_list_bookings_filters(client, studio, admin_headers):
    make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11), status="CONFIRMED")
    make_booking(studio, datetime(2030, 1, 9, 10), datetime(2030, 1, 9, 11))

    rows = client.get("/admin/bookings", query_string={"status": "confirmed"}, headers=admin_headers).get_json()
    assert len(rows) == 1
    assert rows[0]["status"] == "CONFIRMED"

    rows = client.get("/admin/bookings", query_string={"date": "2030-01-09"}, headers=admin_headers).get_json()
    assert len(rows) == 1
    assert rows[0]["start"] == "2030-01-09T10:00:00+00:00"

    resp = client.get("/admin/bookings", query_string={"status": "LOST"}, headers=admin_headers)
    assert resp.status_code == 400


def test_cancel_and_refund(client, studio, admin_headers, stripe_stub):
    booking = make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11), status="CONFIRMED",
                           stripe_payment_intent_id="pi_42")

    resp = client.post(f"/admin/bookings/{booking.id}/refund", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "REFUNDED"
    assert stripe_stub.refunds == ["pi_42"]

    resp = client.post(f"/admin/bookings/{booking.id}/cancel", json={"reason": "artist ill"}, headers=admin_headers)
    assert resp.status_code == 409


def test_cancel_pending(client, studio, admin_headers):
    booking = make_booking(studio, datetime(2030, 1, 8, 10), datetime(2030, 1, 8, 11))

    resp = client.post(f"/admin/bookings/{booking.id}/cancel", json={"reason": "duplicate"}, headers=admin_headers)
    assert resp.status_code == 200
    assert db.session.get(Booking, booking.id).cancel_reason == "duplicate"

    resp = client.post(f"/admin/bookings/{booking.id}/refund", headers=admin_headers)
    assert resp.status_code == 409


def test_audit_log_listing(client, studio, admin_headers):
    client.post(f"/admin/artists/{studio['artist'].id}/templates",
                json={"weekday": 4, "startMin": 600, "endMin": 900}, headers=admin_headers)

    rows = client.get("/admin/audit-logs", query_string={"action": "TEMPLATE_CREATE"}, headers=admin_headers)
    body = rows.get_json()
    assert len(body) == 1
    assert body[0]["metadata"]["weekday"] == 4
