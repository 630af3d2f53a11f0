from flask import Blueprint, current_app, jsonify, request

from scheduling import catalog
from scheduling.availability import business_tz, compute_availability, parse_range, serialize_availability
from scheduling.errors import ValidationError
from utils.timeutil import utcnow

availability_bp = Blueprint("availability", __name__)

@availability_bp.get("/availability")
def availability():
    # artistId, from, to required; serviceId optional (all offered services when missing)
    artist_id = request.args.get("artistId", type=int)
    service_id = request.args.get("serviceId", type=int)
    if not artist_id:
        raise ValidationError("artistId, from, to required")

    start, end = parse_range(
        request.args.get("from"),
        request.args.get("to"),
        business_tz(),
        current_app.config.get("MAX_AVAILABILITY_DAYS", 62),
    )

    artist = catalog.get_artist(artist_id)
    if service_id:
        services = [catalog.get_offered_link(artist.id, service_id).service]
    else:
        services = [link.service for link in catalog.offered_links(artist.id)]

    result = compute_availability(artist, services, start, end, now=utcnow())
    return jsonify(serialize_availability(result)), 200
