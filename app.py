import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.artist import Artist
from models.booking import Booking
from routes import admin_bp, availability_bp, booking_bp, catalog_bp, health_bp, webhook_bp
from scheduling.admission import sweep_stale_holds
from scheduling.calendar_sync import sync_booking_to_calendar
from scheduling.errors import BookingError

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        db.create_all()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("%s: %s %s", exc.code, exc.message, exc.details or "")
        return jsonify(error=exc.message, code=exc.code), exc.status_code

    @app.errorhandler(Exception)
    def _unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return exc
        db.session.rollback()
        logger.exception("unhandled error")
        return jsonify(error="Internal Server Error"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("sweep-holds")
    def sweep_holds():
        """Cancel PENDING holds older than STALE_HOLD_MINUTES."""
        count = sweep_stale_holds()
        click.echo(f"{count} stale hold(s) cancelled")

    @app.cli.command("sync-calendar")
    @click.option("--limit", default=100, show_default=True, help="Max bookings to retry.")
    def sync_calendar(limit):
        """Retry calendar sync for CONFIRMED bookings that never made it into the artist's calendar."""
        pending = (
            Booking.query
            .join(Artist, Booking.artist_id == Artist.id)
            .filter(
                Booking.status == "CONFIRMED",
                Booking.calendar_synced_at.is_(None),
                Artist.calendar_id.isnot(None),
            )
            .order_by(Booking.start_at.asc())
            .limit(limit)
            .all()
        )
        synced = sum(1 for booking in pending if sync_booking_to_calendar(booking))
        click.echo(f"{synced}/{len(pending)} booking(s) synced")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
