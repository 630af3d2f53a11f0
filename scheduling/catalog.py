from models import db
from models.artist import Artist
from models.service import Service, ServiceOnArtist
from scheduling.errors import InvalidPriceError, NotFoundError


def get_artist(artist_id):
    artist = db.session.get(Artist, artist_id)
    if not artist or not artist.is_active:
        raise NotFoundError("Artist not found", artist_id=artist_id)
    return artist


def offered_links(artist_id):
    """Active artist/service links whose service is active, ordered by title."""
    return (
        ServiceOnArtist.query
        .join(Service, ServiceOnArtist.service_id == Service.id)
        .filter(
            ServiceOnArtist.artist_id == artist_id,
            ServiceOnArtist.active.is_(True),
            Service.active.is_(True),
        )
        .order_by(Service.title.asc())
        .all()
    )


def get_offered_link(artist_id, service_id):
    service = db.session.get(Service, service_id)
    if not service or not service.active:
        raise NotFoundError("Service not found", service_id=service_id)

    link = ServiceOnArtist.query.filter_by(artist_id=artist_id, service_id=service.id).first()
    if not link or not link.active:
        raise NotFoundError("Service not offered by this artist", artist_id=artist_id, service_id=service_id)
    return link


def amount_due(link):
    # a deposit, when the service has one, is what checkout collects
    if link.service.deposit:
        return link.service.deposit
    return link.effective_price


def quote(link, min_charge):
    price = link.effective_price
    due = amount_due(link)
    if price is None or price <= 0 or due < min_charge:
        raise InvalidPriceError("Invalid service price", price=price, amount_due=due)
    service = link.service
    return {
        "service": {"id": service.id, "slug": service.slug, "title": service.title},
        "price": price,
        "base_price": service.price,
        "override_price": link.price_override,
        "amount_due": due,
        "deposit": service.deposit,
        "duration_min": service.duration_min,
        "buffer_before_min": service.buffer_before_min,
        "buffer_after_min": service.buffer_after_min,
    }


def serialize_link(link):
    service = link.service
    return {
        "id": service.id,
        "slug": service.slug,
        "title": service.title,
        "price": link.effective_price,
        "base_price": service.price,
        "override_price": link.price_override,
        "deposit": service.deposit,
        "duration_min": service.duration_min,
        "buffer_before_min": service.buffer_before_min,
        "buffer_after_min": service.buffer_after_min,
    }
