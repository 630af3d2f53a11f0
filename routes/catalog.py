from flask import Blueprint, current_app, jsonify, request

from models.artist import Artist
from scheduling import catalog
from scheduling.errors import ValidationError

catalog_bp = Blueprint("catalog", __name__)

@catalog_bp.get("/artists")
def list_artists():
    artists = Artist.query.filter_by(is_active=True).order_by(Artist.name.asc()).all()
    return jsonify([
        {"id": a.id, "slug": a.slug, "name": a.name, "calendar_linked": a.has_calendar}
        for a in artists
    ]), 200


@catalog_bp.get("/artists/<int:artist_id>/services")
def artist_services(artist_id: int):
    artist = catalog.get_artist(artist_id)
    links = catalog.offered_links(artist.id)
    return jsonify(items=[catalog.serialize_link(link) for link in links]), 200


@catalog_bp.get("/quote")
def quote():
    artist_id = request.args.get("artistId", type=int)
    service_id = request.args.get("serviceId", type=int)
    if not artist_id or not service_id:
        raise ValidationError("artistId and serviceId required")

    artist = catalog.get_artist(artist_id)
    link = catalog.get_offered_link(artist.id, service_id)
    return jsonify(catalog.quote(link, current_app.config.get("MIN_CHARGE_MINOR_UNITS", 50))), 200
