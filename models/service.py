from datetime import datetime
from models.db import db

class Service(db.Model):
    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(80), unique=True, nullable=False, index=True)
    title = db.Column(db.String(160), nullable=False)

    duration_min = db.Column(db.Integer, nullable=False, default=60)
    price = db.Column(db.Integer, nullable=False, default=0)  # minor units (pence)
    deposit = db.Column(db.Integer, nullable=True)            # charged instead of price when set
    buffer_before_min = db.Column(db.Integer, nullable=False, default=0)
    buffer_after_min = db.Column(db.Integer, nullable=False, default=0)

    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class ServiceOnArtist(db.Model):
    __tablename__ = "service_on_artist"

    id = db.Column(db.Integer, primary_key=True)
    artist_id = db.Column(db.Integer, db.ForeignKey("artists.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)

    price_override = db.Column(db.Integer, nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)

    artist = db.relationship("Artist", back_populates="services")
    service = db.relationship("Service")

    __table_args__ = (
        db.UniqueConstraint("artist_id", "service_id", name="uq_service_on_artist"),
    )

    @property
    def effective_price(self) -> int:
        if self.price_override is not None:
            return self.price_override
        return self.service.price
