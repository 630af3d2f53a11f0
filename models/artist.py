from datetime import datetime
from models.db import db

class Artist(db.Model):
    __tablename__ = "artists"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(80), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # External calendar link (at most one per artist, so it lives on the row)
    calendar_id = db.Column(db.String(255), nullable=True)
    # Fernet-encrypted JSON bundle, see utils.crypto
    calendar_credentials = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    services = db.relationship("ServiceOnArtist", back_populates="artist", cascade="all, delete-orphan")

    @property
    def has_calendar(self) -> bool:
        return bool(self.calendar_id and self.calendar_credentials)
