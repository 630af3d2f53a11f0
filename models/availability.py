from datetime import datetime
from models.db import db

OVERRIDE_TYPES = ("CLOSED", "OPEN", "EXTEND", "REDUCE")

class AvailabilityTemplate(db.Model):
    __tablename__ = "availability_templates"

    id = db.Column(db.Integer, primary_key=True)
    artist_id = db.Column(db.Integer, db.ForeignKey("artists.id"), nullable=False, index=True)

    weekday = db.Column(db.Integer, nullable=False)    # 0=Sun .. 6=Sat
    start_min = db.Column(db.Integer, nullable=False)  # minutes since local midnight
    end_min = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_template_weekday"),
        db.CheckConstraint("start_min < end_min", name="ck_template_window"),
    )


class AvailabilityOverride(db.Model):
    __tablename__ = "availability_overrides"

    id = db.Column(db.Integer, primary_key=True)
    artist_id = db.Column(db.Integer, db.ForeignKey("artists.id"), nullable=False, index=True)

    date = db.Column(db.Date, nullable=False, index=True)  # business-timezone calendar date
    type = db.Column(db.String(10), nullable=False)        # CLOSED, OPEN, EXTEND, REDUCE
    start_min = db.Column(db.Integer, nullable=True)       # CLOSED ignores the window
    end_min = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def window(self):
        if self.start_min is None or self.end_min is None:
            return None
        return (self.start_min, self.end_min)
