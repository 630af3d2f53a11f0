"""
Google Calendar v3 client used for two things only:

* reading an artist's free/busy feed as an extra busy overlay for availability
* writing confirmed bookings into the artist's calendar (create-or-update,
  keyed on a marker embedded in the event description)

Access tokens are exchanged from the stored refresh token on each client
construction; nothing is cached between requests. Use the client as a
context manager so the HTTP connection pool it creates gets closed.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from flask import current_app

from utils.crypto import CredentialError, decrypt_credentials

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarError(Exception):
    pass


def _parse_rfc3339(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _rfc3339(dt: datetime) -> str:
    return dt.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def _exchange_refresh_token(http: httpx.Client, refresh_token: str, client_id: str, client_secret: str) -> str:
    try:
        response = http.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
    except httpx.HTTPError as exc:
        raise CalendarError(f"Token refresh request failed: {exc}") from exc
    if response.status_code != 200:
        raise CalendarError(f"Token refresh failed ({response.status_code}): {response.text}")
    access_token = response.json().get("access_token")
    if not access_token:
        raise CalendarError("Token response missing access_token")
    return access_token


class GoogleCalendarClient:
    def __init__(self, calendar_id: str, access_token: str, http: Optional[httpx.Client] = None,
                 time_zone: Optional[str] = None):
        self.calendar_id = calendar_id
        self.time_zone = time_zone
        # only a client created here is closed here
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=10)
        self._headers = {"Authorization": f"Bearer {access_token}"}

    def close(self):
        if self._owns_http:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @classmethod
    def from_refresh_token(cls, calendar_id: str, refresh_token: str, *, client_id: str,
                           client_secret: str, http: Optional[httpx.Client] = None,
                           time_zone: Optional[str] = None) -> "GoogleCalendarClient":
        owns_http = http is None
        http = http or httpx.Client(timeout=10)
        try:
            access_token = _exchange_refresh_token(http, refresh_token, client_id, client_secret)
        except CalendarError:
            if owns_http:
                http.close()
            raise
        client = cls(calendar_id, access_token, http=http, time_zone=time_zone)
        client._owns_http = owns_http
        return client

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{GOOGLE_CALENDAR_API}{path}"
        try:
            response = self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise CalendarError(f"{method} {path} failed: {exc}") from exc
        if response.status_code not in (200, 201):
            raise CalendarError(f"{method} {path} returned {response.status_code}: {response.text}")
        return response.json()

    def free_busy(self, time_min: datetime, time_max: datetime) -> list:
        """Busy intervals as naive-UTC (start, end) pairs, one call for the whole range."""
        body = {
            "timeMin": _rfc3339(time_min),
            "timeMax": _rfc3339(time_max),
            "items": [{"id": self.calendar_id}],
        }
        data = self._request("POST", "/freeBusy", json=body)
        entry = (data.get("calendars") or {}).get(self.calendar_id) or {}
        if entry.get("errors"):
            raise CalendarError(f"freeBusy errors for {self.calendar_id}: {entry['errors']}")

        busy = []
        for item in entry.get("busy", []):
            if not item.get("start") or not item.get("end"):
                continue
            start = _parse_rfc3339(item["start"])
            end = _parse_rfc3339(item["end"])
            if end > start:
                busy.append((start, end))
        return busy

    def find_event_by_marker(self, marker: str, start: datetime, end: datetime) -> Optional[str]:
        # marker is "BOOKING:<id>"; full-text search on the id, then confirm the exact marker
        params = {
            "timeMin": _rfc3339(start - timedelta(minutes=1)),
            "timeMax": _rfc3339(end + timedelta(minutes=1)),
            "singleEvents": "true",
            "maxResults": 10,
            "q": marker.split(":", 1)[-1],
        }
        data = self._request("GET", f"/calendars/{self.calendar_id}/events", params=params)
        for item in data.get("items", []):
            lines = (item.get("description") or "").splitlines()
            if marker in (line.strip() for line in lines):
                return item.get("id")
        return None

    def upsert_event(self, *, marker: str, start: datetime, end: datetime, summary: str,
                     description: str, location: Optional[str] = None, attendees=None,
                     existing_event_id: Optional[str] = None) -> str:
        """Create the event, or patch the one already carrying `marker`. Returns the event id."""
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": _rfc3339(start)},
            "end": {"dateTime": _rfc3339(end)},
        }
        if self.time_zone:
            body["start"]["timeZone"] = self.time_zone
            body["end"]["timeZone"] = self.time_zone
        if location:
            body["location"] = location
        if attendees:
            body["attendees"] = attendees

        event_id = existing_event_id or self.find_event_by_marker(marker, start, end)
        if event_id:
            self._request("PATCH", f"/calendars/{self.calendar_id}/events/{event_id}", json=body)
            logger.info("calendar event updated calendar=%s event=%s", self.calendar_id, event_id)
            return event_id

        created = self._request("POST", f"/calendars/{self.calendar_id}/events", json=body)
        event_id = created.get("id")
        if not event_id:
            raise CalendarError("Event insert response missing id")
        logger.info("calendar event created calendar=%s event=%s", self.calendar_id, event_id)
        return event_id


def calendar_for_artist(artist) -> Optional[GoogleCalendarClient]:
    """Authenticated client for the artist's linked calendar, or None when not linked."""
    if not artist.has_calendar:
        return None
    try:
        bundle = decrypt_credentials(artist.calendar_credentials)
    except CredentialError as exc:
        raise CalendarError(str(exc)) from exc

    refresh_token = bundle.get("refresh_token")
    if not refresh_token:
        raise CalendarError(f"Artist {artist.id} calendar credentials missing refresh_token")

    client_id = current_app.config.get("GOOGLE_CLIENT_ID")
    client_secret = current_app.config.get("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise CalendarError("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are not configured")

    return GoogleCalendarClient.from_refresh_token(
        artist.calendar_id,
        refresh_token,
        client_id=client_id,
        client_secret=client_secret,
        time_zone=bundle.get("time_zone") or current_app.config.get("BUSINESS_TIMEZONE"),
    )
